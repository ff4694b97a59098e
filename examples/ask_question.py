#!/usr/bin/env python
"""Ask the assistant a question and print progress events as they arrive"""
import asyncio
import sys

from jira_assistant.config import Settings
from jira_assistant.models import ChatMessage
from jira_assistant.service_manager import ServiceManager


async def main(question: str):
    settings = Settings.from_env()
    manager = ServiceManager(settings)

    print(f"🔗 Jira: {settings.jira_base_url}")
    print(f"📋 Board: {settings.board_id}\n")

    try:
        async for event in manager.orchestrator.stream([ChatMessage(role='user', content=question)]):
            if event.type == 'tool_call':
                print(f"🔧 {event.tool}({event.arguments})")
            elif event.type == 'tool_result':
                error = event.data.get('error')
                print(f"   ↳ {'❌ ' + error if error else '✅ ok'}")
            elif event.type == 'structured_data':
                print(f"📊 {event.data['total_issues']} issues, {event.data['total_story_points']} points")
            elif event.type == 'chunk':
                print(event.content, end="", flush=True)
            elif event.type == 'error':
                print(f"\n❌ {event.content}")
            elif event.type == 'done':
                print()
    finally:
        await manager.close()


if __name__ == "__main__":
    question = " ".join(sys.argv[1:]) or "What is in the current sprint?"
    asyncio.run(main(question))
