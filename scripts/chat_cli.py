#!/usr/bin/env python3
"""Interactive chat CLI for playground agents and teams."""

import argparse
import asyncio

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from playground.clients.playground import PlaygroundClient
from playground.config import PlaygroundConfig
from playground.errors import PlaygroundAPIError
from playground.models.messages import Message
from playground.models.target import ConversationTarget
from playground.services.chat import ChatService
from playground.services.reducer import ConversationState, TurnPhase
from playground.utils.logging import LogConfig, setup_logging


class ConsoleNotifier:
    """Shows service notifications on the console."""

    def __init__(self, console: Console):
        self.console = console

    def info(self, message: str) -> None:
        self.console.print(f"[green]{message}[/green]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]❌ {message}[/red]")


class ChatCLI:
    """Interactive chat interface for playground backends."""

    def __init__(self, config: PlaygroundConfig, target: ConversationTarget | None = None):
        """Initialize chat CLI."""
        self.console = Console()
        self.client = PlaygroundClient(config)
        self.chat = ChatService(self.client, target=target, notifier=ConsoleNotifier(self.console))

    async def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]🤖 Agent Playground - Interactive Chat[/bold blue]\n"
                "Type your messages to chat with the selected agent or team.\n"
                "Commands: /help, /agents, /use, /sessions, /load, /delete, /clear, /quit",
                border_style="blue",
            )
        )

        try:
            if not await self._test_connection():
                self.console.print(
                    f"[red]❌ Cannot connect to the playground at {self.client.config.endpoint}.[/red]"
                )
                return

            self.console.print("[green]✅ Connected to playground[/green]\n")
            if self.chat.target is None:
                await self._show_agents()
            else:
                await self._show_sessions()

            while True:
                user_input = await asyncio.to_thread(Prompt.ask, "\n[bold cyan]You[/bold cyan]")
                command, _, argument = user_input.strip().partition(" ")

                if command.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                elif command == "/clear":
                    self.chat.new_chat()
                    self.console.print("[yellow]🔄 Started a new chat[/yellow]")
                elif command == "/agents":
                    await self._show_agents()
                elif command == "/use":
                    self._use_target(argument)
                elif command == "/sessions":
                    await self._show_sessions()
                elif command == "/load":
                    await self._load_session(argument.strip())
                elif command == "/delete":
                    await self.chat.delete_session(argument.strip())
                elif user_input.strip() == "":
                    continue
                else:
                    await self._send_message(user_input)

        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")
            await self.client.aclose()

    async def _test_connection(self) -> bool:
        """Test connection to the playground."""
        try:
            return await self.client.get_status() == 200
        except PlaygroundAPIError:
            return False

    async def _send_message(self, message: str) -> None:
        """Send a message and render the agent response while it streams."""
        with Live(self._render_pending(self.chat.state), console=self.console, refresh_per_second=8) as live:
            unsubscribe = self.chat.subscribe(lambda state: live.update(self._render_pending(state)))
            try:
                state = await self.chat.send_message(message)
            finally:
                unsubscribe()

        if state.phase == TurnPhase.ERRORED:
            self.console.print(f"[red]❌ {state.error_message}[/red]")

    def _render_pending(self, state: ConversationState) -> Panel:
        """Render the agent message of the current turn."""
        message = state.pending_message
        if message is None or (not message.content and not message.tool_calls):
            return Panel("[dim]💭 Thinking...[/dim]", border_style="dim")
        return self._message_panel(message)

    def _message_panel(self, message: Message) -> Panel:
        """Render one transcript message with its tool calls."""
        if message.role == "user":
            return Panel(message.content, title="[bold cyan]You[/bold cyan]", border_style="cyan")

        parts = []
        for tool_call in message.tool_calls:
            status = "❌" if tool_call.tool_call_error else ("✅" if tool_call.content is not None else "⏳")
            parts.append(f"[dim]{status} {tool_call.tool_name}({tool_call.tool_args or {}})[/dim]")
        parts.append(Markdown(message.content or ""))

        return Panel(
            Group(*parts),
            title="[bold green]🤖 Agent[/bold green]",
            border_style="red" if message.streaming_error else "green",
            padding=(1, 2),
        )

    async def _show_agents(self) -> None:
        """Show the agents and teams that can be chatted with."""
        options = await self.chat.load_agents()
        if not options:
            self.console.print("[yellow]No agents or teams available[/yellow]")
            return

        table = Table(title="Available Agents and Teams")
        table.add_column("Kind")
        table.add_column("Id")
        table.add_column("Name")
        table.add_column("Model")
        for option in options:
            table.add_row(option.kind, option.value, option.label, option.provider)
        self.console.print(table)
        self.console.print("[dim]Use /use agent <id> or /use team <id> to pick one[/dim]")

    def _use_target(self, argument: str) -> None:
        """Switch the conversation target."""
        kind, _, target_id = argument.strip().partition(" ")
        target_id = target_id.strip()
        if kind not in ("agent", "team") or not target_id:
            self.console.print("[red]Usage: /use agent <id> | /use team <id>[/red]")
            return

        target = ConversationTarget.for_team(target_id) if kind == "team" else ConversationTarget.for_agent(target_id)
        self.chat.set_target(target)
        self.console.print(f"[yellow]🔄 Now chatting with {target}[/yellow]")

    async def _show_sessions(self) -> None:
        """Show the sessions of the current target."""
        sessions = await self.chat.load_sessions()
        if not sessions:
            self.console.print("[dim]No previous sessions[/dim]")
            return

        table = Table(title=f"Sessions for {self.chat.target}")
        table.add_column("Session")
        table.add_column("Title")
        for session in sessions:
            table.add_row(session.session_id, session.title or "")
        self.console.print(table)

    async def _load_session(self, session_id: str) -> None:
        """Load and print a past session."""
        messages = await self.chat.load_session(session_id)
        if not messages:
            self.console.print(f"[yellow]No messages found for session {session_id}[/yellow]")
            return
        for message in messages:
            self.console.print(self._message_panel(message))

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /agents - List agents, teams and dynamic agents
• /use agent <id> | /use team <id> - Pick who to chat with
• /sessions - List sessions of the current agent or team
• /load <session_id> - Continue a previous session
• /delete <session_id> - Delete a session
• /clear - Start a new chat
• /quit or /exit - Exit the chat
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("endpoint", nargs="?", help="Playground endpoint (defaults to PLAYGROUND_ENDPOINT)")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--agent", help="Agent or dynamic agent id")
    group.add_argument("--team", help="Team id")
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr (defaults to PLAYGROUND_LOG_FILE)")
    args = parser.parse_args()

    setup_logging(LogConfig.from_env(level=args.log_level, log_file=args.log_file))

    config = PlaygroundConfig.from_env()
    if args.endpoint:
        config = PlaygroundConfig(endpoint=args.endpoint, timeout=config.timeout, user_id=config.user_id)

    target = None
    if args.team:
        target = ConversationTarget.for_team(args.team)
    elif args.agent:
        target = ConversationTarget.for_agent(args.agent)

    asyncio.run(ChatCLI(config, target).start())


if __name__ == "__main__":
    main()
