from typing import TypedDict, Optional, List, Any, Dict

from langchain_core.prompts import ChatPromptTemplate
from langgraph.graph import StateGraph, END

from src.llm.factory import get_primary_llm
from src.step_design.schemas import StepDesignAgentOutput
from src.agents.step_design.prompts import (
    STEP_DESIGNER_SYSTEM_PROMPT, STEP_DESIGN_USER_PROMPT, build_step_design_prompt,
)


class StepDesignAgentState(TypedDict):
    inputs: Dict[str, Any]
    step_brief: str
    design_output: Optional[StepDesignAgentOutput]
    messages: List[Any]
    errors: Optional[List[str]]


def create_step_design_agent():
    llm = get_primary_llm()
    structured_llm = llm.with_structured_output(StepDesignAgentOutput)

    async def build_brief_node(state: StepDesignAgentState):
        try:
            return {"step_brief": build_step_design_prompt(state["inputs"])}
        except (KeyError, TypeError) as e:
            return {"errors": [f"Invalid step design inputs: {e}"]}

    async def generate_options_node(state: StepDesignAgentState):
        if state.get("errors"):
            return {}

        prompt = ChatPromptTemplate.from_messages([
            ("system", STEP_DESIGNER_SYSTEM_PROMPT),
            ("user", STEP_DESIGN_USER_PROMPT),
        ])

        chain = prompt | structured_llm

        try:
            result: StepDesignAgentOutput = await chain.ainvoke({
                "step_brief": state["step_brief"],
            })
            return {"design_output": result, "errors": []}
        except Exception as e:
            return {"errors": [str(e)]}

    workflow = StateGraph(StepDesignAgentState)
    workflow.add_node("build_brief", build_brief_node)
    workflow.add_node("generate_options", generate_options_node)
    workflow.set_entry_point("build_brief")
    workflow.add_edge("build_brief", "generate_options")
    workflow.add_edge("generate_options", END)

    return workflow.compile()


# Singleton instance accessor
step_design_agent = create_step_design_agent()
