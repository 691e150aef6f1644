"""Pytest configuration and fixtures."""
import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator, Dict, Any, List, Optional, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from dotenv import load_dotenv

# Load .env file if it exists
env_path = Path(__file__).parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Keep exports of the test run out of the working tree
os.environ.setdefault('EXPORTS_DIR', tempfile.mkdtemp(prefix="bookstudio-exports-"))

from bookstudio.config import Settings, get_settings  # noqa: E402
from bookstudio.api import BackendClient  # noqa: E402


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    """Logs and user config land in a throwaway home directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, 'home', lambda: home)
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()


@pytest.fixture
def settings(temp_dir) -> Settings:
    return Settings(exports_dir=temp_dir / "exports", cost_debounce_seconds=0.01)


def make_project(**overrides) -> Dict[str, Any]:
    """Project payload as the backend returns it."""
    data = {
        "id": "p1",
        "title": "My Book",
        "description": "A book about testing",
        "pages": 100,
        "chapters": 3,
        "language": "English",
        "writing_style": "story",
        "outline": "",
        "chapters_content": {},
    }
    data.update(overrides)
    return data


class FakeBackend:
    """In-process stand-in for the book backend REST API."""

    def __init__(self):
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.balance = 10
        self.requests: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []
        self.chapter_failures: Dict[int, Tuple[int, Union[str, bytes]]] = {}
        self.delays: Dict[str, float] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.pdf_bytes = b"%PDF-1.4 fake"
        self.docx_bytes = b"PK\x03\x04 fake docx"
        self.app = self._build_app()

    def _build_app(self) -> web.Application:
        app = web.Application(middlewares=[self._record])
        app.add_routes([
            web.get('/api/projects', self.list_projects),
            web.post('/api/projects', self.create_project),
            web.get('/api/projects/{id}', self.get_project),
            web.get('/api/user/stats', self.user_stats),
            web.get('/api/credits/balance', self.credit_balance),
            web.post('/api/credits/calculate-book-cost', self.book_cost),
            web.post('/api/generate-outline', self.generate_outline),
            web.put('/api/update-outline', self.update_outline),
            web.post('/api/generate-chapter', self.generate_chapter),
            web.put('/api/update-chapter', self.update_chapter),
            web.get('/api/export-book/{id}', self.export_html),
            web.get('/api/export-book-pdf/{id}', self.export_pdf),
            web.get('/api/export-book-docx/{id}', self.export_docx),
        ])
        return app

    @web.middleware
    async def _record(self, request: web.Request, handler):
        body = await request.json() if request.can_read_body else None
        path = request.path[len('/api'):]
        self.requests.append((request.method, path, body))
        delay = self.delays.get(path)
        if delay:
            await asyncio.sleep(delay)
        return await handler(request)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [p for m, p, _ in self.requests if method is None or m == method]

    def chapter_requests(self) -> List[int]:
        return [body['chapter_number'] for m, p, body in self.requests if p == '/generate-chapter']

    def add_project(self, **overrides) -> Dict[str, Any]:
        project = make_project(**overrides)
        self.projects[project['id']] = project
        return project

    def _project(self, project_id: str) -> Dict[str, Any]:
        if project_id not in self.projects:
            raise web.HTTPNotFound(text='{"detail": "Project not found"}', content_type='application/json')
        return self.projects[project_id]

    async def list_projects(self, request):
        return web.json_response(list(self.projects.values()))

    async def create_project(self, request):
        data = await request.json()
        project = self.add_project(id=f"p{len(self.projects) + 1}", **data)
        return web.json_response(project)

    async def get_project(self, request):
        return web.json_response(self._project(request.match_info['id']))

    async def user_stats(self, request):
        return web.json_response({
            "total_books": len(self.projects),
            "total_chapters": sum(len(p['chapters_content']) for p in self.projects.values()),
            "total_words": 1234,
            "recent_activity": 3,
            "credit_balance": self.balance,
            "avg_words_per_chapter": 2500,
            "user_since": "2024-01-01",
        })

    async def credit_balance(self, request):
        return web.json_response({"credit_balance": self.balance})

    async def book_cost(self, request):
        data = await request.json()
        return web.json_response({
            "pages": data['pages'],
            "chapters": data['chapters'],
            "total_cost": data['chapters'],
            "credits_per_chapter": 1,
        })

    async def generate_outline(self, request):
        data = await request.json()
        project = self._project(data['project_id'])
        project['outline'] = f"<h1>Outline of {project['title']}</h1>"
        return web.json_response({"outline": project['outline']})

    async def update_outline(self, request):
        data = await request.json()
        self._project(data['project_id'])['outline'] = data['outline']
        return web.json_response({"message": "Outline updated"})

    async def generate_chapter(self, request):
        data = await request.json()
        project = self._project(data['project_id'])
        number = data['chapter_number']

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.001)
            if number in self.chapter_failures:
                status, detail = self.chapter_failures[number]
                if isinstance(detail, bytes):
                    return web.Response(body=detail, status=status, content_type='text/plain')
                return web.json_response({"detail": detail}, status=status)
            if self.balance < 1:
                return web.json_response(
                    {"detail": f"Insufficient credits. Required: 1, Available: {self.balance}"},
                    status=402
                )
            self.balance -= 1
            content = f"<p>Chapter {number} text</p>"
            project['chapters_content'][str(number)] = content
            return web.json_response({
                "chapter_content": content,
                "credit_cost": 1,
                "remaining_credits": self.balance,
            })
        finally:
            self.in_flight -= 1

    async def update_chapter(self, request):
        data = await request.json()
        project = self._project(data['project_id'])
        project['chapters_content'][str(data['chapter_number'])] = data['content']
        return web.json_response({"message": "Chapter updated"})

    async def export_html(self, request):
        project = self._project(request.match_info['id'])
        return web.json_response({
            "html": f"<html><body><h1>{project['title']}</h1></body></html>",
            "filename": f"{project['title']}.html",
        })

    async def export_pdf(self, request):
        self._project(request.match_info['id'])
        return web.Response(body=self.pdf_bytes, content_type='application/pdf')

    async def export_docx(self, request):
        self._project(request.match_info['id'])
        return web.Response(
            body=self.docx_bytes,
            content_type='application/vnd.openxmlformats-officedocument.wordprocessingml.document'
        )


@pytest.fixture
def project_factory():
    """Build backend project payloads."""
    return make_project


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def backend_url(fake_backend):
    """Serve the fake backend and yield its API base URL."""
    server = TestServer(fake_backend.app)
    await server.start_server()
    try:
        yield str(server.make_url('/api'))
    finally:
        await server.close()


@pytest_asyncio.fixture
async def client(backend_url):
    """Backend client pointed at the fake backend."""
    async with BackendClient(base_url=backend_url, timeout=5) as backend_client:
        yield backend_client
