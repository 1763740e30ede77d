# ============================================================
# record-sync dashboard
# ------------------------------------------------------------
#   GET /         log entries for one level (?level=INFO)
#   GET /health   liveness
#   GET /metrics  prometheus exposition
# The scheduler, when given, lives and dies with the app.
# ============================================================

import html
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse, Response

from record_sync import __version__
from record_sync.batch.scheduler import BatchScheduler
from record_sync.core.models import LogEvent, LogLevel
from record_sync.observability.log_sink import LogSink, format_entry, normalize_level
from record_sync.observability.metrics import generate_metrics, get_content_type

from .access_log import install_access_log


def render_dashboard(level: str, events: list[LogEvent]) -> str:
    options = [lvl.value for lvl in LogLevel]
    if level not in options:
        options.append(level)
    option_tags = "\n".join(
        f'        <option value="{html.escape(name)}"{" selected" if name == level else ""}>'
        f"{html.escape(name)}</option>"
        for name in options
    )
    lines = "\n".join(html.escape(format_entry(event)) for event in events)
    return f"""<!doctype html>
<html>
  <head><title>Log Dashboard</title></head>
  <body>
    <h1>Log Dashboard</h1>
    <form method="get" style="margin-bottom: 20px;">
      <label for="level">Log Level:</label>
      <select id="level" name="level" onchange="this.form.submit()">
{option_tags}
      </select>
    </form>
    <pre>{lines}</pre>
  </body>
</html>
"""


def create_app(
    sink: LogSink,
    access_log_path: str | Path | None = None,
    scheduler: BatchScheduler | None = None,
) -> FastAPI:
    """
    Build the dashboard app.

    Args:
        sink: Log Sink the dashboard reads from
        access_log_path: Where to append combined-format request lines (off when None)
        scheduler: Started on app startup and shut down on exit, when given
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)

    app = FastAPI(title="record-sync", version=__version__, lifespan=lifespan)

    if access_log_path is not None:
        install_access_log(app, access_log_path)

    @app.get("/", response_class=HTMLResponse)
    def dashboard(level: str = Query("INFO", description="Log level to show")):
        try:
            tag = normalize_level(level)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return HTMLResponse(render_dashboard(tag, sink.query(tag)))

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_metrics(), media_type=get_content_type())

    return app
