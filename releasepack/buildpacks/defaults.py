"""Built-in buildpack definitions.

Marker-file packs (maven, gradle, jenkins, cwp, environment) carry heavy
mandatory weights so they win over language packs, and the docker/helm
packs only win when no language pack is eligible.
"""

from __future__ import annotations

from typing import Tuple

from ..models import BuildpackDefinition, SignalKind, SignalPredicate

_MARKER = SignalKind.HAS_MARKER_FILE
_EXT = SignalKind.HAS_EXTENSION
_SHEBANG = SignalKind.HAS_SHEBANG
_CONTENT = SignalKind.CONTENT_MATCH


def _require(kind: SignalKind, pattern: str, weight: float) -> SignalPredicate:
    return SignalPredicate(kind=kind, pattern=pattern, weight=weight, mandatory=True)


def _prefer(kind: SignalKind, pattern: str, weight: float = 1.0) -> SignalPredicate:
    return SignalPredicate(kind=kind, pattern=pattern, weight=weight)


DEFAULT_BUILDPACKS: Tuple[BuildpackDefinition, ...] = (
    BuildpackDefinition(
        name="maven",
        priority=10,
        description="Java or Kotlin project built with Maven",
        predicates=(
            _require(_MARKER, "pom.xml", 10),
            _prefer(_MARKER, "mvnw"),
            _prefer(_EXT, ".java"),
            _prefer(_EXT, ".kt"),
        ),
    ),
    BuildpackDefinition(
        name="gradle",
        priority=20,
        description="JVM project built with Gradle",
        predicates=(
            _require(_MARKER, "build.gradle*", 9),
            _prefer(_MARKER, "gradlew"),
            _prefer(_EXT, ".java"),
            _prefer(_EXT, ".kt"),
        ),
    ),
    BuildpackDefinition(
        name="jenkins",
        priority=30,
        description="Jenkins server image configured through plugins.txt",
        predicates=(_require(_MARKER, "plugins.txt", 8),),
    ),
    BuildpackDefinition(
        name="cwp",
        priority=40,
        description="Custom WAR packager configuration",
        predicates=(_require(_MARKER, "packager-config.yml", 8),),
    ),
    BuildpackDefinition(
        name="environment",
        priority=50,
        description="GitOps environment repository",
        predicates=(_require(_MARKER, "env/Chart.yaml", 8),),
    ),
    BuildpackDefinition(
        name="typescript",
        priority=55,
        description="TypeScript project on a server-side JavaScript runtime",
        predicates=(
            _require(_MARKER, "package.json", 5),
            _require(_MARKER, "tsconfig.json", 2),
            _prefer(_EXT, ".ts"),
            _prefer(_CONTENT, "es-module-import"),
        ),
    ),
    BuildpackDefinition(
        name="javascript",
        priority=60,
        description="Generic server-side JavaScript runtime project",
        predicates=(
            _require(_MARKER, "package.json", 5),
            _prefer(_EXT, ".js"),
            _prefer(_SHEBANG, "node*"),
            _prefer(_CONTENT, "commonjs-require"),
            _prefer(_CONTENT, "express-app"),
        ),
    ),
    BuildpackDefinition(
        name="go",
        priority=60,
        description="Go module",
        predicates=(
            _require(_EXT, ".go", 3),
            _prefer(_MARKER, "go.mod", 3),
            _prefer(_CONTENT, "go-package"),
        ),
    ),
    BuildpackDefinition(
        name="rust",
        priority=60,
        description="Rust crate built with Cargo",
        predicates=(
            _require(_MARKER, "Cargo.toml", 5),
            _prefer(_EXT, ".rs"),
        ),
    ),
    BuildpackDefinition(
        name="python",
        priority=70,
        description="Python application",
        predicates=(
            _require(_EXT, ".py", 2),
            _prefer(_MARKER, "requirements.txt", 2),
            _prefer(_MARKER, "pyproject.toml", 2),
            _prefer(_MARKER, "setup.py", 2),
            _prefer(_SHEBANG, "python*"),
            _prefer(_CONTENT, "python-main"),
        ),
    ),
    BuildpackDefinition(
        name="docker-helm",
        priority=75,
        description="Dockerfile plus Helm chart without a recognised language",
        predicates=(
            _require(_MARKER, "Dockerfile", 2),
            _require(_MARKER, "*/Chart.yaml", 2),
        ),
    ),
    BuildpackDefinition(
        name="docker",
        priority=80,
        description="Dockerfile without a recognised language",
        predicates=(
            _require(_MARKER, "Dockerfile", 2),
            _prefer(_CONTENT, "dockerfile-from"),
        ),
    ),
    BuildpackDefinition(
        name="helm",
        priority=85,
        description="Helm chart repository",
        predicates=(
            _require(_MARKER, "*/Chart.yaml", 2),
            _prefer(_CONTENT, "helm-chart"),
        ),
    ),
    BuildpackDefinition(
        name="custom-jenkins",
        priority=90,
        description="Project with a hand-written Jenkinsfile",
        predicates=(_require(_MARKER, "Jenkinsfile", 1),),
    ),
)
