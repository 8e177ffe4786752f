#!/usr/bin/env python3
"""
Agent with a custom tool.

Registers an order lookup next to the built-in weather tool, so the model
sees both in its system prompt and can call either through ACTION steps.

Usage:
    GEMINI_API_KEY=... python examples/order_agent.py "Where is order 1042?"
"""
import sys

from step_agent import AgentLoop, LLM, ToolRegistry, log
from step_agent.runner import print_step
from step_agent.tools import WEATHER_TOOL


ORDERS = {
    "1042": "shipped, arriving Thursday",
    "1043": "waiting for payment",
}


def lookup_order(order_id: str) -> str:
    status = ORDERS.get(order_id.strip().lstrip("#"))
    if status is None:
        return f"No order with id {order_id}"
    return f"Order {order_id} is {status}"


def main() -> int:
    query = sys.argv[1] if len(sys.argv) > 1 else "What is the status of order 1042?"

    tools = ToolRegistry([WEATHER_TOOL])
    tools.register_function(
        "lookupOrder",
        lookup_order,
        description="Current status of an order",
        signature="lookupOrder(orderId: string): string",
    )
    tools.freeze()

    with LLM() as llm:
        result = AgentLoop(llm, tools, max_steps=20, on_step=print_step).run(query)
        stats = llm.get_stats()
        log(f"Total cost: ${stats['total_cost']:.4f}")
        log(f"Total tokens: {stats['total_tokens']}")

    if not result.ok:
        log(f"Failed: {result.error}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
