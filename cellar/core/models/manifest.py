"""
Manifest model — one buildable version of one package.

A manifest ("formula") is loaded from YAML, validated once, and never
mutated afterwards. Build, install and test steps are declarative
directives interpreted by the fixed pipeline components, so a new
release is a data change (URL, digest, version), not a code change.

Example formula::

    name: metadata
    homepage: https://github.com/zmwangx/metadata
    source:
      url: https://github.com/zmwangx/metadata/archive/v0.1.0.tar.gz
      sha256: 1ac3491c1bf92fd339cabee49beb04fd913667d9f214bd2777722c25c477586e
    build_dependencies: [pkg-config, rust, make]
    build: make release
    install:
      dist/v{version}/metadata: executable
      dist/v{version}/metadata.1: manual-page
    test:
      command: ["{bin}/metadata", "test.mp3"]
      fixtures: [test.mp3]
      expected_pattern: 'Filename:\\s+test.mp3.*Container format:\\s+MP3'
      multiline: true
"""

from __future__ import annotations

import re
import shlex
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cellar.core.errors import ManifestError
from cellar.core.services.formula.domain.digest import (
    SUPPORTED_ALGORITHMS,
    check_digest,
    split_digest,
)
from cellar.core.services.formula.domain.paths import (
    CATEGORIES,
    MANIFEST_PLACEHOLDERS,
    TEST_PLACEHOLDERS,
    Category,
    check_relative_path,
    find_placeholders,
    render,
)
from cellar.core.services.formula.domain.version import (
    Version,
    infer_version_from_url,
)

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._+-]*$")


def _split_command(value: Any) -> Any:
    """Accept ``"make release"`` as well as ``["make", "release"]``."""
    if isinstance(value, str):
        return shlex.split(value)
    return value


class SourceSpec(BaseModel):
    """Where the source archive lives and what it must hash to."""

    model_config = ConfigDict(frozen=True)

    url: str
    algorithm: str = "sha256"
    digest: str

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # Formula shorthand: ``sha256: <hex>``
        for algo in SUPPORTED_ALGORITHMS:
            if algo in data and "digest" not in data:
                data["algorithm"] = algo
                data["digest"] = data.pop(algo)
        digest = data.get("digest")
        if isinstance(digest, str) and ":" in digest and "algorithm" not in data:
            data["algorithm"], data["digest"] = split_digest(digest)
        return data

    @property
    def archive_name(self) -> str:
        """Basename of the URL path, used for the downloaded file."""
        from urllib.parse import urlparse

        name = PurePosixPath(urlparse(self.url).path).name
        return name or "source.archive"


class BuildDirective(BaseModel):
    """Program plus arguments, run inside the extracted source tree."""

    model_config = ConfigDict(frozen=True)

    program: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _from_string(cls, data: Any) -> Any:
        if isinstance(data, (str, list, tuple)):
            argv = _split_command(data)
            if not argv:
                return {"program": ""}
            return {"program": argv[0], "args": list(argv[1:])}
        return data

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


class InstallDirective(BaseModel):
    """Copy one build output into a category directory."""

    model_config = ConfigDict(frozen=True)

    source: str
    category: str


class TestDirective(BaseModel):
    """Acceptance test: command plus an expected-output pattern."""

    __test__ = False  # not a pytest class

    model_config = ConfigDict(frozen=True)

    command: tuple[str, ...]
    expected_pattern: str
    multiline: bool = False
    fixtures: tuple[str, ...] = ()
    expected_exit: int = 0

    @model_validator(mode="before")
    @classmethod
    def _split(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("command"), str):
            data = dict(data)
            data["command"] = _split_command(data["command"])
        return data

    @property
    def regex_flags(self) -> int:
        return re.DOTALL | re.MULTILINE if self.multiline else 0


class Manifest(BaseModel):
    """Immutable description of one package version.

    ``name`` + ``version`` identify the instance. ``validate()`` is
    the single gate for semantic rules; the loader always runs it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    name: str
    version: str = ""
    description: str = ""
    homepage: str = ""

    source: SourceSpec
    build_dependencies: frozenset[str] = frozenset()
    dependencies: tuple[str, ...] = ()

    build_directive: BuildDirective = Field(alias="build")
    install_directives: tuple[InstallDirective, ...] = Field(alias="install")
    test_directive: TestDirective = Field(alias="test")

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # ``install`` may be an ordered mapping of source → category
        for key in ("install", "install_directives"):
            raw = data.get(key)
            if isinstance(raw, dict):
                data[key] = [{"source": s, "category": c} for s, c in raw.items()]

        # Infer the version from the archive name, as formulas do
        if not data.get("version"):
            src = data.get("source")
            url = src.get("url") if isinstance(src, dict) else getattr(src, "url", None)
            if isinstance(url, str):
                inferred = infer_version_from_url(url)
                if inferred:
                    data["version"] = inferred
        elif not isinstance(data["version"], str):
            data["version"] = str(data["version"])

        # One spelling per release: "v0.1.9" and "0.1.9" share a key and a record
        if Version.is_valid(data.get("version")):
            data["version"] = str(Version(data["version"]))
        return data

    # ── Identity ─────────────────────────────────────────────────

    @property
    def key(self) -> str:
        """``name-version`` label for logs and messages."""
        return f"{self.name}-{self.version}"

    @property
    def identity(self) -> tuple[str, str]:
        """``(name, version)``, what ownership checks compare."""
        return (self.name, self.version)

    @property
    def parsed_version(self) -> Version:
        return Version(self.version)

    def substitutions(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}

    # ── Directive helpers ────────────────────────────────────────

    def category_for(self, directive: InstallDirective) -> Category:
        return CATEGORIES[directive.category]

    def artifact_path(self, directive: InstallDirective) -> str:
        """Install source path with ``{name}``/``{version}`` filled in."""
        return render(directive.source, self.substitutions())

    def destination(self, directive: InstallDirective, prefix: Path) -> Path:
        """``prefix/<category dir>/<basename>`` for a directive."""
        basename = PurePosixPath(self.artifact_path(directive)).name
        return prefix / self.category_for(directive).subdir / basename

    def build_argv(self) -> list[str]:
        subs = self.substitutions()
        return [render(a, subs) for a in self.build_directive.argv]

    def test_argv(self, locations: dict[str, str]) -> list[str]:
        values = {**self.substitutions(), **locations}
        return [render(a, values) for a in self.test_directive.command]

    # ── Validation ───────────────────────────────────────────────

    def validate(self) -> None:  # type: ignore[override]
        """Check the semantic rules a schema cannot express.

        Raises:
            ManifestError: listing every problem found.
        """
        problems: list[str] = []

        if not _NAME_RE.match(self.name):
            problems.append(f"Invalid package name: {self.name!r}")

        if not self.version:
            problems.append("Version is missing and cannot be inferred from the source URL")
        elif not Version.is_valid(self.version):
            problems.append(f"Not a well-formed version: {self.version!r}")

        if not self.source.url.strip():
            problems.append("Source URL is empty")
        err = check_digest(self.source.algorithm, self.source.digest)
        if err:
            problems.append(f"Malformed source digest: {err}")

        if not self.build_directive.program.strip():
            problems.append("Build directive has no program")

        if not self.install_directives:
            problems.append("At least one install directive is required")
        seen: dict[str, str] = {}
        for d in self.install_directives:
            if d.category not in CATEGORIES:
                problems.append(
                    f"Unrecognized install category {d.category!r} for {d.source}. "
                    f"Valid: {', '.join(sorted(CATEGORIES))}"
                )
                continue
            path_err = check_relative_path(self.artifact_path(d))
            if path_err:
                problems.append(f"Install source {d.source!r}: {path_err}")
                continue
            dest = str(self.destination(d, Path(".")))
            if dest in seen:
                problems.append(
                    f"Install directives {seen[dest]!r} and {d.source!r} "
                    f"both target {dest}"
                )
            seen[dest] = d.source

        problems.extend(self._check_placeholders())

        if not self.test_directive.command:
            problems.append("Test directive has no command")
        try:
            re.compile(self.test_directive.expected_pattern)
        except re.error as e:
            problems.append(f"Invalid test pattern: {e}")
        for fixture in self.test_directive.fixtures:
            fx_err = check_relative_path(fixture)
            if fx_err:
                problems.append(f"Fixture {fixture!r}: {fx_err}")

        if problems:
            raise ManifestError(
                f"Invalid formula '{self.name}': " + "; ".join(problems),
                problems=problems,
            )

    def _check_placeholders(self) -> list[str]:
        problems = []
        manifest_strings = [*self.build_directive.argv]
        manifest_strings += [d.source for d in self.install_directives]
        for s in manifest_strings:
            for ph in find_placeholders(s):
                if ph not in MANIFEST_PLACEHOLDERS:
                    problems.append(f"Unknown placeholder {{{ph}}} in {s!r}")
        for s in self.test_directive.command:
            for ph in find_placeholders(s):
                if ph not in TEST_PLACEHOLDERS:
                    problems.append(f"Unknown placeholder {{{ph}}} in {s!r}")
        return problems
