"""CLI entrypoint for the document repository."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="docrepo", help="Document repository command-line interface")
ocr_app = typer.Typer(name="ocr", help="OCR maintenance commands")
app.add_typer(ocr_app, name="ocr")

DEFAULT_HOST = "http://127.0.0.1:5173"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("DOCREPO_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, timeout: float = 60, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=timeout, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDF to ingest"),
    module: str = typer.Option(..., "--module", help="Source module handing the file over"),
    item: str = typer.Option(..., "--item", help="Item id within the source module"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Upload a PDF on behalf of another module."""
    with file.expanduser().open("rb") as fh:
        resp = _request(
            "POST",
            "/documents/ingest",
            host=host,
            files={"file": (file.name, fh, "application/pdf")},
            data={"source_module": module, "source_item_id": item},
        )
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def show(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show document metadata, links and OCR state."""
    resp = _request("GET", f"/documents/{document_id}", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum number of hits"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Full-text search."""
    params: dict[str, object] = {"q": q}
    if limit is not None:
        params["limit"] = limit
    resp = _request("GET", "/search", host=host, params=params)
    typer.echo(json.dumps(resp.json(), indent=2))


@ocr_app.command("retry")
def retry(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Reset a document to pending and rerun OCR."""
    resp = _request("POST", f"/ocr/{document_id}/retry", host=host, timeout=None)
    typer.echo(json.dumps(resp.json(), indent=2))


@ocr_app.command("retry-failed")
def retry_failed(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Retry OCR for every failed document."""
    resp = _request("POST", "/ocr/retry-failed", host=host, timeout=None)
    typer.echo(json.dumps(resp.json(), indent=2))


@ocr_app.command("process-pending")
def process_pending(
    limit: Optional[int] = typer.Option(None, "--limit", help="Documents to process in this sweep"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run OCR for the oldest pending documents."""
    params = {"limit": limit} if limit is not None else None
    resp = _request("POST", "/ocr/process-pending", host=host, params=params, timeout=None)
    typer.echo(json.dumps(resp.json(), indent=2))


@ocr_app.command("health")
def health(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show OCR queue counts."""
    resp = _request("GET", "/ocr/health", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command("ingest-dir")
def ingest_dir(
    folder: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory to walk"),
    module: str = typer.Option(..., "--module", help="Source module recorded on every link"),
) -> None:
    """Ingest every PDF below a directory, in-process."""
    from docrepo.api.dependencies import get_ingestion_service
    from docrepo.ingest.bulk import ingest_directory

    stats = ingest_directory(get_ingestion_service(), folder, module)
    typer.echo(json.dumps(stats.to_dict(), indent=2))


@app.command()
def watch(
    folder: Path = typer.Argument(..., exists=True, file_okay=False, help="Drop folder to watch"),
    module: str = typer.Option(..., "--module", help="Source module recorded on every link"),
) -> None:
    """Ingest PDFs as they land in a folder until interrupted."""
    from docrepo.api.dependencies import get_ingestion_service
    from docrepo.ingest.watcher import DropFolderWatcher

    watcher = DropFolderWatcher(get_ingestion_service(), folder, module)
    watcher.start()
    typer.echo(f"Watching {watcher.folder}; press Ctrl+C to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()


if __name__ == "__main__":
    app()
