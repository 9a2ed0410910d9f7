"""
Example: Diagnosing an incident

Runs the rule-based planner against local Loki/Prometheus endpoints and
prints every iteration. Set OBS_LOKI_URL, OBS_PROM_URL and
OPS_PORTAL_DOCS_DIR to point at your own stack.
"""

import asyncio

from ops_agent import AgentSettings, OpsAgentClient


async def example_rule_based_diagnosis():
    """Diagnose without a model, using keyword rules."""
    print("=== Rule-based diagnosis ===\n")

    client = OpsAgentClient(AgentSettings.from_env(planner="rules", run_timeout_s=60))
    output = await client.diagnose("Which alerts are firing for checkout?")

    for trace in output.iterations:
        print(f"Iteration {trace.iteration}: {[s['name'] for s in trace.plan['steps']]}")
        for result in trace.results:
            status = "ok" if "error" not in result else f"failed: {result['error']}"
            print(f"  {result['name']}: {status}")

    print(f"\nStatus: {output.status.value}")
    print(output.final_answer or output.failure_reason)


async def example_breaker_status():
    """Show circuit breaker state after a run."""
    print("\n=== Circuit breakers ===\n")

    client = OpsAgentClient(AgentSettings.from_env(planner="rules"))
    await client.diagnose("cpu usage on the api nodes")
    for name, stats in client.circuit_breakers().items():
        print(f"{name}: {stats['state']} (failures={stats['total_failures']})")


async def main():
    await example_rule_based_diagnosis()
    await example_breaker_status()


if __name__ == "__main__":
    asyncio.run(main())
