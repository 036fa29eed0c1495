"""Terminal output for inspecting generated proxies.

Usage:
    from proxygen.debug import show_source

    show_source(Service, TracingStrategy(), prefix="Traced")
"""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console, Group
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from proxygen.compiler import Diagnostic, Severity, SourceCompiler
from proxygen.config import get_config
from proxygen.errors import CompileError
from proxygen.generator import ProxySourceGenerator, ProxySpec, proxy_binary_name
from proxygen.schema import TypeSchema
from proxygen.strategies import MethodBodyStrategy, get_strategy

SYNTAX_THEME = "monokai"


def generate_source(
    target: type, strategy: MethodBodyStrategy | None = None, prefix: str = ""
) -> str:
    """Source the proxy of ``target`` would be compiled from."""
    strategy = strategy or get_strategy(get_config().default_strategy)
    spec = ProxySpec.from_schema(TypeSchema(target), prefix)
    return ProxySourceGenerator(strategy).generate(spec).source


def check_source(name: str, source: str) -> list[Diagnostic]:
    """Compile ``source`` without loading it and return every diagnostic."""
    try:
        artifact = SourceCompiler().compile_or_raise(name, source)
    except CompileError as e:
        return list(e.diagnostics)
    return list(artifact.diagnostics)


def diagnostics_table(diagnostics: Iterable[Diagnostic]) -> Table:
    table = Table(title="Compile diagnostics")
    table.add_column("Severity")
    table.add_column("Location")
    table.add_column("Code")
    table.add_column("Message")
    for d in diagnostics:
        style = "red" if d.severity is Severity.ERROR else "yellow"
        location = f"{d.line}:{d.column}" if d.column else str(d.line or "")
        table.add_row(
            Text(d.severity.value, style=style), location, d.code or "", d.message
        )
    return table


def show_diagnostics(
    diagnostics: Iterable[Diagnostic], console: Console | None = None
) -> None:
    console = console or Console()
    diagnostics = list(diagnostics)
    if not diagnostics:
        console.print("[green]No diagnostics[/green]")
        return
    console.print(diagnostics_table(diagnostics))


def show_source(
    target: type,
    strategy: MethodBodyStrategy | None = None,
    prefix: str = "",
    console: Console | None = None,
) -> str:
    """Print the highlighted proxy source of ``target`` and its diagnostics.

    Returns:
        The generated source
    """
    console = console or Console()
    source = generate_source(target, strategy, prefix)
    name = proxy_binary_name(target, prefix)

    header = Text(name, style="bold")
    syntax = Syntax(source, "python", theme=SYNTAX_THEME, line_numbers=True)
    console.print(Group(header, syntax))

    diagnostics = check_source(name, source)
    if diagnostics:
        show_diagnostics(diagnostics, console)
    return source
