"""
Gradio UI definition for clipcode.

A single sidebar-style chat panel: model selector, prompt box, streamed
response. Handlers live in clipcode.handlers.
"""

import gradio as gr

from clipcode.config import PANEL_TITLE, PANEL_WELCOME
from clipcode.handlers import clear_chat, fetch_available_models, handle_stop, send_prompt
from clipcode.ui_helpers import CUSTOM_CSS


def create_app() -> gr.Blocks:
    """Create the Gradio application."""

    # Gradio 5.x: theme/css on Blocks(); Gradio 6.x: on launch()
    import inspect
    blocks_params = inspect.signature(gr.Blocks).parameters
    blocks_kwargs = {"title": PANEL_TITLE}

    if "theme" in blocks_params:
        blocks_kwargs["theme"] = gr.themes.Soft()
        blocks_kwargs["css"] = CUSTOM_CSS

    with gr.Blocks(**blocks_kwargs) as app:

        with gr.Column(elem_id="clipcode-panel"):
            gr.Markdown(f"# {PANEL_TITLE}")

            with gr.Row():
                model = gr.Dropdown(
                    label="Model",
                    choices=[],
                    value=None,
                    elem_id="clipcode-model",
                    scale=3
                )
                fetch_btn = gr.Button(
                    "🔄 Fetch",
                    variant="secondary",
                    size="sm",
                    scale=1
                )

            response = gr.Markdown(PANEL_WELCOME, elem_id="clipcode-response")
            status = gr.Markdown("", elem_id="clipcode-status")

            prompt = gr.Textbox(
                label="Prompt",
                placeholder="Ask something... (Enter to send)",
                lines=3
            )

            with gr.Row():
                send_btn = gr.Button("▶️ Send", variant="primary")
                stop_btn = gr.Button("⏹️ Stop", variant="stop")
                clear_btn = gr.Button("🗑️ Clear", variant="secondary")

        # ─────────────────────────────────────────────────────────────
        # EVENT BINDINGS
        # ─────────────────────────────────────────────────────────────

        # Model discovery on panel open; never blocks sending
        app.load(fn=fetch_available_models, outputs=[status, model])
        fetch_btn.click(fn=fetch_available_models, outputs=[status, model])

        send_event = send_btn.click(
            fn=send_prompt,
            inputs=[prompt, model],
            outputs=[response, status]
        )
        submit_event = prompt.submit(
            fn=send_prompt,
            inputs=[prompt, model],
            outputs=[response, status]
        )

        stop_btn.click(
            fn=handle_stop,
            outputs=[status],
            cancels=[send_event, submit_event]
        )
        clear_btn.click(fn=clear_chat, outputs=[prompt, response, status])

    return app
