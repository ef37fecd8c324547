from langgraph.graph import StateGraph, END
from quizfeed.models.state import GraphState
from quizfeed.workflow.nodes import PipelineNodes

# Executed in order; any recorded error diverts to mark_failed
STEPS = [
    "acquire_job",
    "mark_processing",
    "resolve_source",
    "fetch_source",
    "encode_source",
    "generate_questions",
    "parse_output",
    "persist_questions",
    "mark_done",
]


def _next_or_failed(following: str):
    return lambda state: "mark_failed" if state.get("error") else following


def create_workflow(nodes: PipelineNodes):
    """Create and return the compiled generation graph."""
    workflow = StateGraph(GraphState)

    # Add nodes
    for name in STEPS:
        workflow.add_node(name, getattr(nodes, name))
    workflow.add_node("mark_failed", nodes.mark_failed)

    workflow.set_entry_point("acquire_job")

    # Without a job row there is nothing to mark failed
    workflow.add_conditional_edges(
        "acquire_job",
        lambda state: END if state.get("error") else "mark_processing",
        {
            "mark_processing": "mark_processing",
            END: END
        }
    )

    for current, following in zip(STEPS[1:], STEPS[2:] + [END]):
        workflow.add_conditional_edges(
            current,
            _next_or_failed(following),
            {
                following: following,
                "mark_failed": "mark_failed"
            }
        )

    workflow.add_edge("mark_failed", END)

    return workflow.compile()
