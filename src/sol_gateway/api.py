"""FastAPI application exposing the gateway routes."""

import logging
import sys
from collections.abc import AsyncIterator
from urllib.parse import quote

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sol_gateway import __version__
from sol_gateway.config import Settings, get_settings
from sol_gateway.documents import render_document
from sol_gateway.exceptions import BadRequest, DocumentError, GatewayError, NotionAPIError, Unauthorized
from sol_gateway.models import (
    AppendContentRequest,
    DeletePageRequest,
    FindPagesRequest,
    GenerateDocumentRequest,
    ProbeCreateRequest,
    SearchRequest,
    UpdateTaskRequest,
    UpsertRequest,
)
from sol_gateway.notion.blocks import build_blocks
from sol_gateway.notion.client import NotionClient
from sol_gateway.notion.directory import PeopleDirectory, list_all_users
from sol_gateway.notion.pages import archive_page, create_probe_page, create_task, find_pages, resolve_page_id
from sol_gateway.notion.schema import fetch_schema
from sol_gateway.notion.upsert import PageUpserter
from sol_gateway.search import search_web, simulated_results

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "sol-v3-agent"


# Dependencies


def app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_notion_client(settings: Settings = Depends(app_settings)) -> AsyncIterator[NotionClient]:
    """One Notion client per request, closed when the response is done."""
    client = NotionClient(settings.notion_key, notion_version=settings.notion_version)
    try:
        yield client
    finally:
        await client.close()


def get_people_directory(request: Request) -> PeopleDirectory:
    return request.app.state.people_directory


def require_token(request: Request, settings: Settings = Depends(app_settings)) -> None:
    """Shared-secret check for mutating routes; open when SERVER_TOKEN is unset."""
    if not settings.server_token:
        return
    token = request.headers.get("x-sol-token") or request.headers.get("authorization") or ""
    if token.startswith("Bearer "):
        token = token[len("Bearer ") :]
    if token != settings.server_token:
        raise Unauthorized()


def _selector(query_db: str | None, body_db: str | None) -> str:
    return (query_db or body_db or "").strip().lower()


def _base_url(request: Request, settings: Settings) -> str:
    if settings.base_url:
        return settings.base_url.rstrip("/")
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{scheme}://{request.headers.get('host')}"


def _public_url(request: Request, settings: Settings, file_name: str) -> str:
    return f"{_base_url(request, settings)}/files/{quote(file_name)}"


def _simulating(selector: str, database_id: str | None, note: str | None = None) -> dict:
    payload = {
        "ok": True,
        "simulating": True,
        "db": selector or "auto",
        "database_id": database_id or None,
    }
    if note:
        payload["note"] = note
    return payload


# Exception handlers


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if isinstance(exc, NotionAPIError):
        logger.error(f"Notion call failed on {request.url.path}: {exc.status_code} {exc.payload or exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(e.get("loc", [])), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": "invalid_request", "details": jsonable_errors(exc)},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the gateway application."""
    settings = settings or get_settings()
    if settings.debug:
        logging.getLogger("sol_gateway").setLevel(logging.DEBUG)

    app = FastAPI(title="Sol Gateway", version=__version__)
    app.state.settings = settings
    app.state.people_directory = PeopleDirectory(ttl=settings.people_cache_ttl)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    settings.files_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/files", StaticFiles(directory=str(settings.files_dir)), name="files")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client_ip = request.client.host if request.client else None
        user_agent = request.headers.get("user-agent", "")
        logger.info(f"{request.method} {request.url.path} ip={client_ip} ua=\"{user_agent}\"")
        return await call_next(request)

    # Service info

    @app.get("/")
    async def root() -> dict:
        return {"ok": True, "service": SERVICE_NAME}

    @app.get("/health")
    async def health(request: Request) -> dict:
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "version": settings.version,
            "base_url": _base_url(request, settings),
            "notion": "configured" if settings.notion_configured else "not_configured",
            "notion_databases": {
                "docs": bool(settings.docs_database_id),
                "roadmap": bool(settings.roadmap_database_id),
                "tasks": bool(settings.tasks_database_id),
            },
            "notion_default_order": ["docs", "tasks", "roadmap"],
            "search": "configured" if settings.search_api_key else "not_configured",
            "auth": "protected" if settings.server_token else "open",
        }

    @app.get("/whoami")
    async def whoami(request: Request) -> dict:
        headers = request.headers
        return {
            "ok": True,
            "method": request.method,
            "ip": request.client.host if request.client else None,
            "headers": {
                "host": headers.get("host"),
                "user-agent": headers.get("user-agent"),
                "x-forwarded-for": headers.get("x-forwarded-for"),
                "x-sol-token": "<present>" if headers.get("x-sol-token") else None,
                "authorization": "<present>" if headers.get("authorization") else None,
                "content-type": headers.get("content-type"),
            },
        }

    # Pages

    @app.post("/upsert_page", dependencies=[Depends(require_token)])
    async def upsert_page(
        body: UpsertRequest,
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
        directory: PeopleDirectory = Depends(get_people_directory),
    ) -> dict:
        selector = _selector(db, body.db)
        database_id = settings.database_id_for(selector)
        fields = body.resolved_fields()
        logger.debug(f"upsert_page: field keys {list(fields)}")

        if not settings.notion_key or not database_id:
            return _simulating(selector, database_id, "Provide NOTION_KEY and a valid database id to upsert.")

        upserter = PageUpserter(client, settings, directory)
        result = await upserter.upsert(
            database_id,
            fields,
            page_id=body.resolved_page_id(),
            title=body.title,
            content=body.content,
        )
        return {"db": selector or "auto", **result.model_dump()}

    @app.post("/update_task", dependencies=[Depends(require_token)])
    async def update_task(
        body: UpdateTaskRequest,
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        selector = _selector(db, body.db)
        database_id = settings.database_id_for(selector)
        if not body.title or not body.status:
            raise BadRequest(error="missing_fields", hint="'title' and 'status' are required.")

        if not settings.notion_key or not database_id:
            return {
                **_simulating(selector, database_id),
                "task_id": body.task_id or "SIMULATED_TASK_ID",
                "title": body.title,
                "status": body.status,
                "notes": body.notes or "",
            }

        created = await create_task(client, database_id, body.title, body.status, body.notes)
        return {
            "ok": True,
            "db": selector or "auto",
            "database_id": database_id,
            "title": body.title,
            "status": body.status,
            **created,
        }

    @app.post("/append_task_content", dependencies=[Depends(require_token)])
    async def append_task_content(
        body: AppendContentRequest,
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        page_id = (body.page_id or "").strip()
        if not page_id:
            raise BadRequest(error="page_id_required")
        if not settings.notion_key:
            return {"ok": True, "simulating": True, "page_id": page_id}

        blocks = build_blocks(body.model_dump())
        if not blocks:
            raise BadRequest(error="no_content")

        await client.append_block_children(page_id, blocks)
        return {"ok": True, "page_id": page_id, "appended": len(blocks)}

    @app.post("/delete_page", dependencies=[Depends(require_token)])
    async def delete_page(
        body: DeletePageRequest,
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        selector = _selector(db, body.db)
        title = (body.title or "").strip() or None
        if not settings.notion_key:
            return {
                "ok": True,
                "simulating": True,
                "note": "Provide NOTION_KEY to perform archive operations.",
                "page_id": body.page_id or None,
                "db": selector or "auto",
                "title": title,
                "dry_run": body.dry_run,
            }

        page_id = await resolve_page_id(client, body.page_id, settings.database_id_for(selector), title)
        if body.dry_run:
            return {"ok": True, "dry_run": True, "action": "archive", "page_id": page_id, "reason": body.reason or None}

        archived_id = await archive_page(client, page_id)
        return {"ok": True, "archived": True, "page_id": archived_id, "reason": body.reason or None}

    @app.post("/find_pages")
    async def find_pages_route(
        body: FindPagesRequest,
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        selector = _selector(db, body.db)
        database_id = settings.database_id_for(selector)
        if not settings.notion_key or not database_id:
            return _simulating(selector, database_id, "Provide NOTION_KEY and a valid database id to search.")

        results = await find_pages(client, database_id, body.title, exact=body.exact)
        return {"ok": True, "db": selector or "auto", "database_id": database_id, "results": results}

    # Diagnostics

    @app.get("/notion_schema")
    async def notion_schema(
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        selector = _selector(db, None)
        database_id = settings.database_id_for(selector)
        if not settings.notion_key or not database_id:
            return _simulating(selector, database_id, "Provide NOTION_KEY and a valid database id to fetch schema.")

        schema = await fetch_schema(client, database_id)
        return {
            "ok": True,
            "db": selector or "auto",
            "database_id": database_id,
            "database_title": schema.title,
            "title_property": schema.title_property,
            "properties": {name: d.summary() for name, d in schema.properties.items()},
        }

    @app.get("/notion_raw_props")
    async def notion_raw_props(
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        selector = _selector(db, None)
        database_id = settings.database_id_for(selector)
        if not settings.notion_key or not database_id:
            return _simulating(selector, database_id)

        schema = await fetch_schema(client, database_id)
        return {"ok": True, "db": selector or "auto", "database_id": database_id, "raw_properties": schema.raw_properties}

    @app.get("/notion_users")
    async def notion_users(client: NotionClient = Depends(get_notion_client)) -> dict:
        if not settings.notion_key:
            return {"ok": True, "simulating": True, "note": "Set NOTION_KEY to fetch users."}

        index = await list_all_users(client)
        users = [
            {"id": user_id, "name": user.get("name"), "email": (user.get("person") or {}).get("email")}
            for user_id, user in index.by_id.items()
        ]
        return {"ok": True, "users": users}

    @app.post("/notion_test_create", dependencies=[Depends(require_token)])
    async def notion_test_create(
        body: ProbeCreateRequest,
        db: str | None = Query(None),
        client: NotionClient = Depends(get_notion_client),
    ) -> dict:
        selector = _selector(db, body.db)
        database_id = settings.database_id_for(selector)
        title = body.title or "Sol v3 Health Check"
        if not settings.notion_key or not database_id:
            return _simulating(selector, database_id, "Provide NOTION_KEY and a valid database id to create a page.")

        created = await create_probe_page(client, database_id, title)
        return {"ok": True, "db": selector or "auto", "database_id": database_id, "title": title, **created}

    # Documents and search

    @app.post("/generate_document", dependencies=[Depends(require_token)])
    def generate_document(body: GenerateDocumentRequest, request: Request) -> dict:
        if not body.title or not body.content or not body.format:
            raise BadRequest(error="missing_fields", hint="'title', 'content' and 'format' are required.")
        try:
            path = render_document(body.title, body.content, body.format, settings.files_dir)
        except OSError as e:
            logger.exception("Document generation failed")
            raise DocumentError(str(e)) from e
        return {
            "ok": True,
            "doc_url": _public_url(request, settings, path.name),
            "title": body.title,
            "format": body.format,
        }

    @app.post("/search_web")
    async def search_web_route(body: SearchRequest) -> dict:
        if not body.query:
            raise BadRequest(error="missing_query")
        if not settings.search_api_key:
            return {"ok": True, "simulating": True, "results": simulated_results(body.query)}

        results = await search_web(settings.search_api_key, body.query, body.recency_days)
        return {"ok": True, "results": results}

    return app
