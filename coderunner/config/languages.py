"""
Language registry for sandboxed execution.

Each entry describes the sandbox image and the shell command line that turns
the submitted source file into a running program. Compiled languages chain
the compile and run steps with ``&&`` so a failed build never runs and the
compiler diagnostics surface on stderr.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class LanguageSpec:
    """Configuration for running one programming language in a sandbox."""

    identifier: str  # Canonical identifier: "python", "cpp", etc.
    name: str  # Display name
    image: str  # Sandbox image reference
    file_extension: str  # Extension without dot
    run_command: str
    compile_command: Optional[str] = None
    file_name: Optional[str] = None  # Overrides program.<ext>
    slow_start: bool = False  # Heavy runtime host process, gets the long deadline
    timeout_seconds: Optional[int] = None  # Per-language deadline override
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def source_file(self) -> str:
        """Name of the source file written into the workspace."""
        return self.file_name or f"program.{self.file_extension}"

    @property
    def command(self) -> str:
        """Shell command executed inside the sandbox."""
        return build_command(self)


LANGUAGES: Dict[str, LanguageSpec] = {
    "c": LanguageSpec(
        identifier="c",
        name="C",
        image="gcc:latest",
        file_extension="c",
        compile_command="gcc -o program program.c",
        run_command="./program",
    ),
    "cpp": LanguageSpec(
        identifier="cpp",
        name="C++",
        image="gcc:latest",
        file_extension="cpp",
        compile_command="g++ -o program program.cpp",
        run_command="./program",
        aliases=("c++", "cxx"),
    ),
    "java": LanguageSpec(
        identifier="java",
        name="Java",
        image="openjdk:17",
        file_extension="java",
        file_name="Main.java",
        compile_command="javac Main.java",
        run_command="java Main",
    ),
    "python": LanguageSpec(
        identifier="python",
        name="Python",
        image="python:3.9",
        file_extension="py",
        run_command="python program.py",
        aliases=("py", "python3"),
    ),
    "kotlin": LanguageSpec(
        identifier="kotlin",
        name="Kotlin",
        image="kotlin:custom",
        file_extension="kt",
        compile_command="kotlinc program.kt -include-runtime -d program.jar",
        run_command="java -jar program.jar",
        aliases=("kt",),
    ),
    "scala": LanguageSpec(
        identifier="scala",
        name="Scala",
        image="scala:custom",
        file_extension="scala",
        compile_command="scalac program.scala",
        run_command="scala Main",
    ),
    "javascript": LanguageSpec(
        identifier="javascript",
        name="JavaScript",
        image="node:16",
        file_extension="js",
        run_command="node program.js",
        slow_start=True,
        aliases=("js", "node"),
    ),
    "go": LanguageSpec(
        identifier="go",
        name="Go",
        image="golang:latest",
        file_extension="go",
        run_command="go run program.go",
        aliases=("golang",),
    ),
    "ruby": LanguageSpec(
        identifier="ruby",
        name="Ruby",
        image="ruby:latest",
        file_extension="rb",
        run_command="ruby program.rb",
        aliases=("rb",),
    ),
    "rust": LanguageSpec(
        identifier="rust",
        name="Rust",
        image="rust:latest",
        file_extension="rs",
        compile_command="rustc -o program program.rs",
        run_command="./program",
        aliases=("rs",),
    ),
    "csharp": LanguageSpec(
        identifier="csharp",
        name="C#",
        image="mcr.microsoft.com/dotnet/sdk:8.0",
        file_extension="cs",
        run_command="dotnet script /app/program.cs",
        slow_start=True,
        aliases=("cs", "c#"),
    ),
}

_ALIASES: Dict[str, str] = {
    alias: spec.identifier for spec in LANGUAGES.values() for alias in spec.aliases
}


def get_language(identifier: str) -> Optional[LanguageSpec]:
    """Get language configuration by identifier or alias."""
    if not identifier:
        return None
    key = identifier.lower().strip()
    return LANGUAGES.get(_ALIASES.get(key, key))


def get_supported_languages() -> List[str]:
    """Get list of canonical language identifiers."""
    return list(LANGUAGES.keys())


def is_supported_language(identifier: str) -> bool:
    """Check if a language identifier or alias is supported."""
    return get_language(identifier) is not None


def build_command(spec: LanguageSpec) -> str:
    """Compose the compile and run steps into one shell command."""
    steps = [spec.compile_command, spec.run_command]
    return " && ".join(step for step in steps if step)


def get_timeout(spec: LanguageSpec, default: int, slow_start: int) -> int:
    """Resolve the wait deadline in seconds for a language."""
    if spec.timeout_seconds:
        return spec.timeout_seconds
    return slow_start if spec.slow_start else default
