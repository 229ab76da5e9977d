"""NiceGUI chat interface typing out streamed answers."""

import asyncio
import os
from datetime import datetime

import httpx
from nicegui import ui

from ragchat.ui.stream_consumer import MessageAssembler, consume_chat_stream
from ragchat.ui.typewriter import Typewriter

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")

# Conversation turns sent back to the API with each question
MAX_HISTORY_TURNS = 10

PAGE_STYLE = """
<style>
    body { background: #eef1f5; }
    .answer-text { white-space: pre-wrap; }
    .composer:focus-within { border-color: #0f766e; }
</style>
"""

USER_BUBBLE = "bg-teal-700 text-white rounded-2xl rounded-br-sm"
ASSISTANT_BUBBLE = "bg-white text-slate-800 rounded-2xl rounded-bl-sm shadow-sm answer-text"


class ChatSession:
    """Chat state of one browser tab.

    The transcript lives here, not on the server; it is sent with every
    question as ``history``.
    """

    def __init__(self) -> None:
        self.messages: list[dict] = []
        self.is_streaming: bool = False
        self.typewriter: Typewriter | None = None
        self.stream_task: asyncio.Task | None = None

    def add_message(self, role: str, content: str) -> None:
        self.messages.append({
            "role": role,
            "content": content,
            "time": datetime.now().strftime("%I:%M %p"),
        })

    def history(self) -> list[dict[str, str]]:
        turns = self.messages[-MAX_HISTORY_TURNS:]
        return [{"role": m["role"], "content": m["content"]} for m in turns]

    def stop(self) -> None:
        """Abort the answer in flight: no more rendering, request closed."""
        if self.typewriter is not None:
            self.typewriter.cancel()
            self.typewriter = None
        if self.stream_task is not None:
            self.stream_task.cancel()
            self.stream_task = None
        self.is_streaming = False


@ui.page("/")
async def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(PAGE_STYLE)
    session = ChatSession()
    ui.context.client.on_disconnect(session.stop)

    messages_container: ui.column
    input_field: ui.textarea
    send_btn: ui.button

    def render_message(msg: dict) -> ui.label:
        is_user = msg["role"] == "user"
        align = "justify-end" if is_user else "justify-start"
        bubble = USER_BUBBLE if is_user else ASSISTANT_BUBBLE

        with ui.row().classes(f"w-full {align}"):
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    label = ui.label(msg["content"]).classes("text-sm leading-relaxed")
                ui.label(msg["time"]).classes("text-[10px] text-gray-400")
        return label

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            if not session.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("forum").classes("text-5xl text-gray-300")
                    ui.label("Ask about your documents").classes("text-lg text-gray-400")
            for msg in session.messages:
                render_message(msg)

    async def send_message() -> None:
        question = input_field.value.strip()
        if not question or session.is_streaming:
            return

        input_field.value = ""
        session.is_streaming = True
        send_btn.disable()

        history = session.history()
        session.add_message("user", question)
        refresh_messages()

        with messages_container:
            answer_label = render_message(
                {"role": "assistant", "content": "", "time": datetime.now().strftime("%I:%M %p")}
            )

        typewriter = Typewriter(answer_label.set_text)
        session.typewriter = typewriter
        errors: list[str] = []

        async def consume() -> bool:
            async with httpx.AsyncClient(timeout=120.0) as client:
                return await consume_chat_stream(
                    client,
                    f"{API_BASE_URL}/chat",
                    {"question": question, "history": history},
                    MessageAssembler(typewriter),
                    on_error=errors.append,
                )

        task = asyncio.create_task(consume())
        session.stream_task = task
        await asyncio.wait({task})

        if task.cancelled() or session.typewriter is not typewriter:
            # Page went away or a new chat was started mid-answer
            return

        ok = task.result()
        await typewriter.wait_drained()
        if session.typewriter is not typewriter:
            return
        answer = typewriter.rendered
        session.typewriter = None
        session.stream_task = None
        session.is_streaming = False
        send_btn.enable()

        if ok:
            session.add_message("assistant", answer)
        else:
            partial = f"{answer}\n\n" if answer else ""
            session.add_message("assistant", f"{partial}Error: {errors[-1]}")
            ui.notify(errors[-1], type="negative")
        refresh_messages()

    def new_chat() -> None:
        session.stop()
        session.messages.clear()
        send_btn.enable()
        refresh_messages()

    # === UI Layout ===
    frame = "w-full max-w-3xl mx-auto bg-slate-50 rounded-xl shadow overflow-hidden"
    with (
        ui.element("div").classes("w-full min-h-screen p-4 md:p-8"),
        ui.column().classes(frame).style("height: calc(100vh - 4rem)"),
    ):
        # Header
        with ui.row().classes("w-full bg-slate-900 px-5 py-3 items-center justify-between"):
            with ui.row().classes("items-center gap-3"):
                ui.icon("travel_explore").classes("text-white text-3xl")
                ui.label("Document Assistant").classes("text-lg font-semibold text-white")
            ui.button(icon="add", on_click=new_chat).props("flat round color=white")

        # Messages
        with (
            ui.scroll_area().classes("flex-grow w-full bg-gray-50"),
            ui.column().classes("w-full p-5"),
        ):
            messages_container = ui.column().classes("w-full gap-4")
            refresh_messages()

        # Input
        with ui.row().classes("w-full p-4 gap-3 items-end bg-white border-t"):
            composer = "flex-grow composer border border-slate-200 rounded-xl px-3 py-2"
            with ui.element("div").classes(composer):
                input_field = (
                    ui.textarea(placeholder="Ask a question...")
                    .props("autogrow borderless dense rows=1")
                    .classes("w-full")
                    .on("keydown.enter.prevent", send_message)
                )
            send_btn = ui.button(icon="send", on_click=send_message).props(
                "round unelevated color=primary"
            )


def main() -> None:
    ui.run(title="Document Assistant", port=8080, reload=False)


if __name__ == "__main__":
    main()
