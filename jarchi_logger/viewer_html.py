from __future__ import annotations

import json
from collections.abc import Iterable
from html import escape
from typing import Any

from .grouping import LogGroups
from .records import LogRecord

MARKED_SRC = "https://cdn.jsdelivr.net/npm/marked@11.1.1/marked.min.js"
PREVIEW_CHARS = 50

PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{title}</title>
    <link rel="stylesheet" href="/assets/style.css" />
{head_extra}
  </head>
  <body>
    <header class="topbar">
      <h1>{title}</h1>
      <nav>
        <a href="/"{logs_current}>Logs</a>
        <a href="/console"{console_current}>Console</a>
      </nav>
      <span id="connectionStatus" class="status status-offline">offline</span>
    </header>
    <main>
{body}
    </main>
{data_script}    <script src="/assets/{script}"></script>
  </body>
</html>
"""


def _json_for_script(value: Any) -> str:
    # "</" would end the surrounding <script> element early.
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def message_preview(message: str, limit: int = PREVIEW_CHARS) -> str:
    if len(message) <= limit:
        return message
    return f"{message[:limit]}..."


def render_log_entry(record: LogRecord) -> str:
    level = record.level or ""
    level_class = f" level-{escape(level.lower())}" if level else ""
    return (
        f'<div class="log-entry{level_class}">'
        '<div class="log-header">'
        '<span class="arrow">&#9654;</span>'
        f'<span class="timestamp">{escape(record.timestamp)}</span>'
        f'<span class="level">{escape(level)}</span>'
        f'<span class="message">{escape(message_preview(record.message))}</span>'
        "</div>"
        f'<pre class="details hidden">{escape(json.dumps(record.to_dict(), indent=2, ensure_ascii=False))}</pre>'
        "</div>"
    )


def render_log_groups(records: Iterable[LogRecord]) -> str:
    parts: list[str] = []
    for app in LogGroups(records).applications:
        parts.append(f'<div class="app-section" data-name="{escape(app.name)}">')
        parts.append(
            f'<h2 class="section-header"><span class="arrow">&#9654;</span>{escape(app.name)}</h2>'
        )
        parts.append('<div class="app-content hidden">')
        for module in app.modules:
            parts.append(f'<div class="module-section" data-name="{escape(module.name)}">')
            parts.append(
                f'<h3 class="section-header"><span class="arrow">&#9654;</span>{escape(module.name)}</h3>'
            )
            parts.append('<div class="log-entries hidden">')
            parts.extend(render_log_entry(record) for record in module.entries)
            parts.append("</div></div>")
        parts.append("</div></div>")
    return "\n".join(parts)


def render_index(records: list[LogRecord]) -> str:
    body = (
        '      <div class="toolbar">'
        f'<span id="logCount">{len(records)}</span> log entries'
        '<button id="clearLogs" type="button">Clear logs</button>'
        "</div>\n"
        f'      <div id="logContainer">\n{render_log_groups(records)}\n      </div>'
    )
    return PAGE_TEMPLATE.format(
        title="JArchi Logger",
        head_extra="",
        logs_current=' class="current"',
        console_current="",
        body=body,
        data_script="",
        script="app.js",
    )


def render_console_entry(markdown: str) -> str:
    return f'<div class="console-entry"><pre class="markdown-source">{escape(markdown)}</pre></div>'


def render_console(contents: list[str]) -> str:
    entries = "\n".join(render_console_entry(markdown) for markdown in contents)
    body = (
        '      <div class="toolbar">'
        '<button id="resetConsole" type="button">Reset console</button>'
        "</div>\n"
        f'      <div id="consoleContainer">\n{entries}\n      </div>'
    )
    return PAGE_TEMPLATE.format(
        title="JArchi Logger Console",
        head_extra=f'    <script src="{MARKED_SRC}"></script>',
        logs_current="",
        console_current=' class="current"',
        body=body,
        data_script=(
            '    <script type="application/json" id="initialContent">'
            f"{_json_for_script(contents)}</script>\n"
        ),
        script="console.js",
    )
