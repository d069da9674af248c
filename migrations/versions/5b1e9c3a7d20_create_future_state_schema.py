"""create future state schema

Revision ID: 5b1e9c3a7d20
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5b1e9c3a7d20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns():
    return [
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _actor_columns():
    return [
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('updated_by', sa.UUID(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    # Referenced entities
    op.create_table('processes',
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    *_audit_columns(),
    *_actor_columns(),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('process_steps',
    sa.Column('process_id', sa.UUID(), nullable=False),
    sa.Column('step_name', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    sa.Column('lane', sa.String(), nullable=False),
    sa.Column('lead_time_minutes', sa.Integer(), nullable=True),
    sa.Column('cycle_time_minutes', sa.Integer(), nullable=True),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['process_id'], ['processes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_process_steps_process_id'), 'process_steps', ['process_id'], unique=False)
    op.create_table('workflow_contexts',
    sa.Column('process_id', sa.UUID(), nullable=False),
    sa.Column('purpose', sa.String(), nullable=True),
    sa.Column('business_value', sa.String(), nullable=True),
    sa.Column('trigger_events', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('end_outcomes', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('volume_frequency', sa.String(), nullable=True),
    sa.Column('sla_targets', sa.String(), nullable=True),
    sa.Column('constraints', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['process_id'], ['processes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('process_id')
    )
    op.create_table('sessions',
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('process_id', sa.UUID(), nullable=False),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['process_id'], ['processes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sessions_process_id'), 'sessions', ['process_id'], unique=False)
    op.create_table('solution_cards',
    sa.Column('session_id', sa.UUID(), nullable=False),
    sa.Column('bucket', sa.Enum('ELIMINATE', 'MODIFY', 'CREATE', name='solutionbucket'), nullable=False),
    sa.Column('title', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    sa.Column('step_design_status', sa.Enum('STRATEGY_ONLY', 'NEEDS_STEP_DESIGN', 'STEP_DESIGN_COMPLETE', name='stepdesignstatus'), nullable=False),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_solution_cards_session_id'), 'solution_cards', ['session_id'], unique=False)

    # Future state graph
    op.create_table('future_states',
    sa.Column('process_id', sa.UUID(), nullable=False),
    sa.Column('session_id', sa.UUID(), nullable=False),
    sa.Column('parent_version_id', sa.UUID(), nullable=True),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('status', sa.Enum('DRAFT', 'PUBLISHED', name='futurestatestatus'), nullable=False),
    sa.Column('is_locked', sa.Boolean(), nullable=False),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['parent_version_id'], ['future_states.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['process_id'], ['processes.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('session_id', 'version', name='uq_future_states_session_version')
    )
    op.create_index(op.f('ix_future_states_process_id'), 'future_states', ['process_id'], unique=False)
    op.create_index(op.f('ix_future_states_session_id'), 'future_states', ['session_id'], unique=False)
    op.create_index(op.f('ix_future_states_parent_version_id'), 'future_states', ['parent_version_id'], unique=False)

    op.create_table('future_state_nodes',
    sa.Column('future_state_id', sa.UUID(), nullable=False),
    sa.Column('source_step_id', sa.UUID(), nullable=True),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=True),
    sa.Column('lane', sa.String(), nullable=False),
    sa.Column('step_type', sa.Enum('ACTION', 'DECISION', 'START', 'END', 'SUBPROCESS', name='steptype'), nullable=False),
    sa.Column('lead_time_minutes', sa.Integer(), nullable=True),
    sa.Column('cycle_time_minutes', sa.Integer(), nullable=True),
    sa.Column('position_x', sa.Float(), nullable=False),
    sa.Column('position_y', sa.Float(), nullable=False),
    sa.Column('action', sa.Enum('KEEP', 'MODIFY', 'REMOVE', 'NEW', name='nodeaction'), nullable=False),
    sa.Column('modified_fields', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('linked_solution_id', sa.UUID(), nullable=True),
    sa.Column('active_step_design_version_id', sa.UUID(), nullable=True),
    sa.Column('step_design_status', postgresql.ENUM('STRATEGY_ONLY', 'NEEDS_STEP_DESIGN', 'STEP_DESIGN_COMPLETE', name='stepdesignstatus', create_type=False), nullable=False),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['future_state_id'], ['future_states.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['linked_solution_id'], ['solution_cards.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['source_step_id'], ['process_steps.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_future_state_nodes_future_state_id'), 'future_state_nodes', ['future_state_id'], unique=False)
    op.create_index(op.f('ix_future_state_nodes_linked_solution_id'), 'future_state_nodes', ['linked_solution_id'], unique=False)

    op.create_table('future_state_edges',
    sa.Column('future_state_id', sa.UUID(), nullable=False),
    sa.Column('source_node_id', sa.UUID(), nullable=False),
    sa.Column('target_node_id', sa.UUID(), nullable=False),
    sa.Column('label', sa.String(), nullable=True),
    sa.Column('order_index', sa.Integer(), nullable=False),
    *_audit_columns(),
    sa.ForeignKeyConstraint(['future_state_id'], ['future_states.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['source_node_id'], ['future_state_nodes.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['target_node_id'], ['future_state_nodes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_future_state_edges_future_state_id'), 'future_state_edges', ['future_state_id'], unique=False)
    op.create_index(op.f('ix_future_state_edges_source_node_id'), 'future_state_edges', ['source_node_id'], unique=False)

    op.create_table('future_state_lanes',
    sa.Column('future_state_id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('order_index', sa.Integer(), nullable=False),
    sa.Column('color', sa.Enum('BLUE', 'EMERALD', 'AMBER', 'PURPLE', 'ROSE', 'SLATE', 'CYAN', 'ORANGE', name='lanecolor'), nullable=False),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['future_state_id'], ['future_states.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('future_state_id', 'name', name='uq_future_state_lanes_name')
    )
    op.create_index(op.f('ix_future_state_lanes_future_state_id'), 'future_state_lanes', ['future_state_id'], unique=False)

    op.create_table('future_state_annotations',
    sa.Column('future_state_id', sa.UUID(), nullable=False),
    sa.Column('node_id', sa.UUID(), nullable=True),
    sa.Column('type', sa.Enum('NOTE', 'GUARDRAIL', 'ASSUMPTION', 'RISK', 'INSTRUCTION', name='annotationtype'), nullable=False),
    sa.Column('title', sa.String(), nullable=False),
    sa.Column('content', sa.String(), nullable=True),
    sa.Column('priority', sa.Enum('LOW', 'MEDIUM', 'HIGH', 'CRITICAL', name='annotationpriority'), nullable=False),
    sa.Column('resolved', sa.Boolean(), nullable=False),
    sa.Column('position_x', sa.Float(), nullable=True),
    sa.Column('position_y', sa.Float(), nullable=True),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['future_state_id'], ['future_states.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['node_id'], ['future_state_nodes.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_future_state_annotations_future_state_id'), 'future_state_annotations', ['future_state_id'], unique=False)
    op.create_index(op.f('ix_future_state_annotations_node_id'), 'future_state_annotations', ['node_id'], unique=False)

    # Step design
    op.create_table('step_context',
    sa.Column('session_id', sa.UUID(), nullable=False),
    sa.Column('future_state_id', sa.UUID(), nullable=False),
    sa.Column('node_id', sa.UUID(), nullable=False),
    sa.Column('context_json', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('notes', sa.String(), nullable=True),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['future_state_id'], ['future_states.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['node_id'], ['future_state_nodes.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('node_id')
    )
    op.create_index(op.f('ix_step_context_session_id'), 'step_context', ['session_id'], unique=False)
    op.create_index(op.f('ix_step_context_future_state_id'), 'step_context', ['future_state_id'], unique=False)

    op.create_table('step_design_versions',
    sa.Column('session_id', sa.UUID(), nullable=False),
    sa.Column('future_state_id', sa.UUID(), nullable=False),
    sa.Column('node_id', sa.UUID(), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('status', sa.Enum('DRAFT', 'ACCEPTED', 'ARCHIVED', name='stepdesignversionstatus'), nullable=False),
    sa.Column('selected_option_id', sa.UUID(), nullable=True),
    *_audit_columns(),
    *_actor_columns(),
    sa.ForeignKeyConstraint(['future_state_id'], ['future_states.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['node_id'], ['future_state_nodes.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('node_id', 'version', name='uq_step_design_versions_node_version')
    )
    op.create_index(op.f('ix_step_design_versions_session_id'), 'step_design_versions', ['session_id'], unique=False)
    op.create_index(op.f('ix_step_design_versions_future_state_id'), 'step_design_versions', ['future_state_id'], unique=False)
    op.create_index(op.f('ix_step_design_versions_node_id'), 'step_design_versions', ['node_id'], unique=False)
    # At most one accepted design per node
    op.create_index(
        'uq_step_design_versions_node_accepted',
        'step_design_versions', ['node_id'],
        unique=True,
        postgresql_where=sa.text("status = 'ACCEPTED'"),
    )

    op.create_table('step_design_options',
    sa.Column('version_id', sa.UUID(), nullable=False),
    sa.Column('option_key', sa.String(length=1), nullable=False),
    sa.Column('title', sa.String(), nullable=False),
    sa.Column('summary', sa.String(), nullable=True),
    sa.Column('changes', sa.String(), nullable=True),
    sa.Column('waste_addressed', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('risks', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('dependencies', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('confidence', sa.Float(), nullable=True),
    sa.Column('research_mode_used', sa.Boolean(), nullable=False),
    sa.Column('pattern_labels', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('design_json', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    *_audit_columns(),
    sa.ForeignKeyConstraint(['version_id'], ['step_design_versions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('version_id', 'option_key', name='uq_step_design_options_key')
    )
    op.create_index(op.f('ix_step_design_options_version_id'), 'step_design_options', ['version_id'], unique=False)

    op.create_table('design_assumptions',
    sa.Column('option_id', sa.UUID(), nullable=False),
    sa.Column('assumption', sa.String(), nullable=False),
    sa.Column('risk_if_wrong', sa.String(), nullable=True),
    sa.Column('validation_method', sa.String(), nullable=True),
    sa.Column('validated', sa.Boolean(), nullable=False),
    *_audit_columns(),
    sa.ForeignKeyConstraint(['option_id'], ['step_design_options.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_design_assumptions_option_id'), 'design_assumptions', ['option_id'], unique=False)

    # Circular pointers, added once both sides exist
    op.create_foreign_key(
        'fk_future_state_nodes_active_step_design_version_id',
        'future_state_nodes', 'step_design_versions',
        ['active_step_design_version_id'], ['id'],
        ondelete='SET NULL',
    )
    op.create_foreign_key(
        'fk_step_design_versions_selected_option_id',
        'step_design_versions', 'step_design_options',
        ['selected_option_id'], ['id'],
        ondelete='SET NULL',
    )

    # Agent runs
    op.create_table('agent_runs',
    sa.Column('session_id', sa.UUID(), nullable=False),
    sa.Column('agent_type', sa.Enum('STEP_DESIGN', name='agenttype'), nullable=False),
    sa.Column('input_hash', sa.String(length=32), nullable=False),
    sa.Column('inputs', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column('outputs', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column('model', sa.String(), nullable=True),
    sa.Column('provider', sa.String(), nullable=True),
    sa.Column('status', sa.Enum('QUEUED', 'RUNNING', 'SUCCEEDED', 'FAILED', name='agentrunstatus'), nullable=False),
    sa.Column('error', sa.String(), nullable=True),
    sa.Column('started_at', sa.DateTime(), nullable=True),
    sa.Column('completed_at', sa.DateTime(), nullable=True),
    sa.Column('created_by', sa.UUID(), nullable=True),
    *_audit_columns(),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_agent_runs_session_id'), 'agent_runs', ['session_id'], unique=False)
    op.create_index(op.f('ix_agent_runs_input_hash'), 'agent_runs', ['input_hash'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('agent_runs')
    op.drop_constraint('fk_step_design_versions_selected_option_id', 'step_design_versions', type_='foreignkey')
    op.drop_constraint('fk_future_state_nodes_active_step_design_version_id', 'future_state_nodes', type_='foreignkey')
    op.drop_table('design_assumptions')
    op.drop_table('step_design_options')
    op.drop_index('uq_step_design_versions_node_accepted', table_name='step_design_versions')
    op.drop_table('step_design_versions')
    op.drop_table('step_context')
    op.drop_table('future_state_annotations')
    op.drop_table('future_state_lanes')
    op.drop_table('future_state_edges')
    op.drop_table('future_state_nodes')
    op.drop_table('future_states')
    op.drop_table('solution_cards')
    op.drop_table('sessions')
    op.drop_table('workflow_contexts')
    op.drop_table('process_steps')
    op.drop_table('processes')
    for enum_name in (
        'agentrunstatus', 'agenttype', 'stepdesignversionstatus', 'annotationpriority',
        'annotationtype', 'lanecolor', 'nodeaction', 'steptype', 'futurestatestatus',
        'stepdesignstatus', 'solutionbucket',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
