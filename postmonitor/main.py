from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from postmonitor.config import Settings, get_settings
from postmonitor.models import RunSummary, ScrapeRequest, ScrapeResponse, ScrapeTarget
from postmonitor.orchestrator import CrawlOrchestrator
from postmonitor.security import bearer_matches
from postmonitor.service import build_orchestrator


SCRAPE_EXAMPLE = {
    "urls": [
        "https://www.linkedin.com/in/williamhgates/",
        "https://www.linkedin.com/company/mckinsey/posts/",
    ],
    "maxPosts": 10,
}


def parse_scrape_targets(raw: Any) -> List[ScrapeTarget]:
    # Accepts a url, a list of urls or {url, maxPosts} objects, or [{"Profile URL": [...]}].
    if isinstance(raw, list) and raw and isinstance(raw[0], dict) and raw[0].get("Profile URL"):
        raw = raw[0]["Profile URL"]
    if not isinstance(raw, list):
        raw = [raw]
    targets: List[ScrapeTarget] = []
    for item in raw:
        if isinstance(item, str):
            targets.append(ScrapeTarget(url=item.strip() or None))
        elif isinstance(item, dict):
            url = item.get("url") or item.get("profileUrl") or item.get("Profile URL")
            targets.append(ScrapeTarget(url=str(url).strip() if url else None, maxPosts=item.get("maxPosts")))
        else:
            targets.append(ScrapeTarget(url=None))
    return targets


def create_app(settings: Optional[Settings] = None, orchestrator: Optional[CrawlOrchestrator] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="LinkedIn Post Monitor", version="0.1.0")
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    def get_orchestrator(request: Request) -> CrawlOrchestrator:
        if request.app.state.orchestrator is None:
            request.app.state.orchestrator = build_orchestrator(request.app.state.settings)
        return request.app.state.orchestrator

    def verify_token(authorization: Optional[str] = Header(default=None)) -> None:
        if not settings.api_secret:
            return
        if not bearer_matches(authorization, settings.api_secret):
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _bad_request(message: str) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": message, "example": SCRAPE_EXAMPLE})

    async def _scrape(req: ScrapeRequest, orchestrator: CrawlOrchestrator, persist: bool) -> Any:
        if req.urls is None or req.urls == "":
            return _bad_request('Field "urls" is required')
        try:
            targets = parse_scrape_targets(req.urls)
        except ValidationError as exc:
            return _bad_request(f"Invalid url entry: {exc.errors()[0].get('msg', '')}")
        if not targets:
            return _bad_request("The urls array is empty")
        result = await orchestrator.scrape_urls(
            targets,
            max_posts=req.max_posts or settings.monitor_max_posts_per_source,
            persist=persist,
            group=req.group,
        )
        if persist and not result.success:
            return JSONResponse(status_code=500, content=result.model_dump(mode="json"))
        return result

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "supported_types": ["profile (/in/)", "company (/company/)"],
        }

    @app.post("/api/scrape", response_model=ScrapeResponse, dependencies=[Depends(verify_token)])
    async def scrape(req: ScrapeRequest, orchestrator: CrawlOrchestrator = Depends(get_orchestrator)) -> Any:
        return await _scrape(req, orchestrator, persist=False)

    @app.post("/api/scrape-and-save", response_model=ScrapeResponse, dependencies=[Depends(verify_token)])
    async def scrape_and_save(req: ScrapeRequest, orchestrator: CrawlOrchestrator = Depends(get_orchestrator)) -> Any:
        return await _scrape(req, orchestrator, persist=True)

    @app.post("/api/runs", response_model=RunSummary, dependencies=[Depends(verify_token)])
    async def trigger_run(orchestrator: CrawlOrchestrator = Depends(get_orchestrator)) -> RunSummary:
        return await orchestrator.run(trigger="api")

    @app.get("/api/runs", dependencies=[Depends(verify_token)])
    async def list_runs(
        limit: int = Query(default=20, ge=1, le=200),
        orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
    ) -> Dict[str, Any]:
        if orchestrator.run_log is None:
            return {"runs": []}
        return {"runs": await orchestrator.run_log.recent(limit)}

    return app


app = create_app()
