#!/usr/bin/env python
"""Create an issue directly through the tool executor"""
import asyncio

from jira_assistant.config import Settings
from jira_assistant.models import ToolCall
from jira_assistant.service_manager import ServiceManager


async def main():
    manager = ServiceManager(Settings.from_env())

    try:
        sprints = await manager.fact_cache.get_sprints()
        active = next((s for s in sprints if s.state.value == 'active'), None)

        arguments = {
            'summary': 'Add cart badge feature',
            'description': 'Show the number of items on the cart icon.',
            'issue_type': 'Story',
            'story_points': 3,
        }
        if active:
            arguments['sprint_id'] = active.id

        print("=" * 70)
        print("📝 CREATING ISSUE")
        print("=" * 70)

        result = await manager.executor.execute(ToolCall(name='create_issue', arguments=arguments))

        print(f"\n✅ Created {result['key']}")
        print(f"   URL: {result['url']}")
        print(f"   Sprint: {result['sprint'] or 'None'}")
        print(f"   Status: {result['status']}")
    finally:
        await manager.close()


if __name__ == "__main__":
    asyncio.run(main())
