"""
Shared test fixtures and configuration.

Most tests drive the pipeline with the in-memory adapters from
``cellar.adapters.mock``: a formula named ``hello`` whose source is a
small tarball served by ``MockTransport`` and whose ``make`` build is
simulated by a ``MockRunner`` handler writing the declared outputs.
"""

import hashlib
import io
import tarfile
import zipfile
from pathlib import Path

import pytest
import yaml

from cellar.adapters.mock import InlineFixtureStager, MockRunner, MockTransport, StaticToolProbe
from cellar.core.config.loader import parse_manifest
from cellar.core.models.command import Command, CommandResult
from cellar.core.persistence.audit import AuditWriter
from cellar.core.reliability.locks import PackageLocks
from cellar.core.reliability.retry import RetryPolicy
from cellar.core.services.formula.execution.builder import Builder
from cellar.core.services.formula.execution.fetcher import Fetcher
from cellar.core.services.formula.execution.installer import Installer
from cellar.core.services.formula.execution.verifier import Verifier
from cellar.core.services.formula.orchestration.orchestrator import Pipeline

HELLO_URL = "https://example.org/dl/hello-1.0.tar.gz"


def tar_bytes(files: dict, top: str | None = "hello-1.0", compression: str = "gz") -> bytes:
    """Build a tar archive in memory from ``{relative name: content}``."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode=f"w:{compression}") as tf:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(f"{top}/{name}" if top else name)
            info.size = len(data)
            info.mode = 0o755 if name.endswith(".sh") else 0o644
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def zip_bytes(files: dict, top: str | None = "hello-1.0") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            zf.writestr(f"{top}/{name}" if top else name, content)
    return buf.getvalue()


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


HELLO_SOURCES = {
    "Makefile": "release:\n\tmkdir -p out\n",
    "README": "hello, a tiny test package\n",
}


def simulate_make(outputs: dict[str, str] | None = None):
    """MockRunner handler that writes build outputs into the source tree."""
    outputs = outputs if outputs is not None else {
        "out/hello": "#!/bin/sh\necho hello\n",
        "out/hello.1": ".TH HELLO 1\n",
    }

    def handler(cmd: Command) -> CommandResult:
        for rel, content in outputs.items():
            path = Path(cmd.cwd) / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return CommandResult.success(output="make: built release\n")

    return handler


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def hello_archive() -> bytes:
    return tar_bytes(HELLO_SOURCES)


@pytest.fixture
def hello_data(hello_archive: bytes) -> dict:
    """Raw formula data for ``hello`` 1.0 matching ``hello_archive``."""
    return {
        "name": "hello",
        "description": "Prints a greeting",
        "homepage": "https://example.org/hello",
        "source": {"url": HELLO_URL, "sha256": sha256(hello_archive)},
        "build_dependencies": ["make"],
        "build": "make release",
        "install": {
            "out/hello": "executable",
            "out/hello.1": "manual-page",
        },
        "test": {
            "command": ["{bin}/hello", "greeting.txt"],
            "fixtures": ["greeting.txt"],
            "expected_pattern": r"Hello,\s+world",
        },
    }


@pytest.fixture
def hello_manifest(hello_data: dict):
    return parse_manifest(hello_data)


@pytest.fixture
def transport(hello_archive: bytes) -> MockTransport:
    return MockTransport({HELLO_URL: hello_archive})


@pytest.fixture
def runner() -> MockRunner:
    r = MockRunner()
    r.on("make", simulate_make())
    r.respond("hello", CommandResult.success(output="Hello, world\n"))
    return r


@pytest.fixture
def probe() -> StaticToolProbe:
    return StaticToolProbe({"make", "sh"})


@pytest.fixture
def fixtures() -> InlineFixtureStager:
    return InlineFixtureStager({"greeting.txt": b"world\n"})


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def prefix(tmp_path: Path) -> Path:
    return tmp_path / "prefix"


@pytest.fixture
def delays() -> list[float]:
    return []


@pytest.fixture
def no_sleep(delays: list[float]) -> RetryPolicy:
    """Retry policy that records delays instead of sleeping."""
    return RetryPolicy(attempts=3, base_delay=0.5, max_delay=8.0, sleep=delays.append)


@pytest.fixture
def fetcher(transport, no_sleep, work_root) -> Fetcher:
    return Fetcher(transport, retry=no_sleep, timeout=5, work_root=work_root)


@pytest.fixture
def make_pipeline(fetcher, runner, probe, fixtures, work_root, tmp_path):
    """Factory for pipelines wired to the mock adapters."""
    locks = PackageLocks()
    audit = AuditWriter(tmp_path / "audit.ndjson")

    def _make(manifest, prefix: Path, **overrides) -> Pipeline:
        kwargs = dict(
            fetcher=fetcher,
            builder=Builder(runner, probe, timeout=30),
            installer=Installer(locks),
            verifier=Verifier(runner, fixtures, timeout=30, work_root=work_root),
            locks=locks,
            audit=audit,
        )
        kwargs.update(overrides)
        return Pipeline(manifest, prefix, **kwargs)

    _make.audit = audit  # type: ignore[attr-defined]
    _make.locks = locks  # type: ignore[attr-defined]
    return _make


@pytest.fixture
def make_tar():
    return tar_bytes


@pytest.fixture
def make_zip():
    return zip_bytes


@pytest.fixture
def make_build():
    """Factory for MockRunner build handlers (see ``simulate_make``)."""
    return simulate_make


@pytest.fixture
def digest_of():
    return sha256


BUILD_SH = """\
#!/bin/sh
set -e
mkdir -p out
printf '#!/bin/sh\\necho "Hello, $(cat "$1")"\\n' > out/hello
echo '.TH HELLO 1' > out/hello.1
echo "built hello"
"""


@pytest.fixture
def shell_project(tmp_path: Path) -> dict:
    """A real, shell-built formula served over ``file://``.

    Writes the source archive, a fixtures directory, ``cellar.yml``
    and ``hello.yml`` under ``tmp_path`` and returns their paths.
    """
    archive = tmp_path / "dist" / "hello-1.0.tar.gz"
    archive.parent.mkdir()
    archive.write_bytes(tar_bytes({"build.sh": BUILD_SH}))

    fixtures_dir = tmp_path / "fixtures"
    fixtures_dir.mkdir()
    (fixtures_dir / "greeting.txt").write_text("world\n")

    work = tmp_path / "work"
    audit = tmp_path / "audit.ndjson"
    config = tmp_path / "cellar.yml"
    config.write_text(yaml.safe_dump({
        "fixtures_dir": str(fixtures_dir),
        "work_root": str(work),
        "audit_log": str(audit),
        "fetch_backoff": 0,
    }))

    formula = tmp_path / "hello.yml"
    formula.write_text(yaml.safe_dump({
        "formula": {
            "name": "hello",
            "description": "Prints a greeting",
            "homepage": "https://example.org/hello",
            "source": {"url": archive.as_uri(), "sha256": sha256(archive.read_bytes())},
            "build_dependencies": ["sh"],
            "build": "sh build.sh",
            "install": {"out/hello": "executable", "out/hello.1": "manual-page"},
            "test": {
                "command": ["{bin}/hello", "greeting.txt"],
                "fixtures": ["greeting.txt"],
                "expected_pattern": r"Hello,\s+world",
            },
        }
    }, sort_keys=False))

    return {
        "archive": archive,
        "config": config,
        "formula": formula,
        "work": work,
        "audit": audit,
        "prefix": tmp_path / "prefix",
    }
