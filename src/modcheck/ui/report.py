"""Plain-text rendering of a finished check."""

from __future__ import annotations

from typing import TYPE_CHECKING

from modcheck.domain.model import PackageStatus, UpdateStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from modcheck.app import CheckReport
    from modcheck.domain.dependencies import DependencyAnalysisResult, DependencyNode
    from modcheck.domain.model import Package, ReconciliationPair

_UPDATE_LABELS: dict[UpdateStatus, str] = {
    UpdateStatus.UP_TO_DATE: "up to date",
    UpdateStatus.UPDATE_AVAILABLE: "update available",
    UpdateStatus.NEWER_INSTALLED: "newer than Forge",
    UpdateStatus.NO_VERSIONS_FOUND: "no versions found",
    UpdateStatus.UPDATE_BLOCKED: "update blocked",
    UpdateStatus.INCOMPATIBLE: "incompatible",
}


def _heading(title: str) -> list[str]:
    return ["", title, "-" * len(title)]


def render_pairs(pairs: Sequence[ReconciliationPair]) -> list[str]:
    noted = [pair for pair in pairs if pair.notes]
    if not noted:
        return []
    lines = _heading("Server/client pairing notes")
    for pair in noted:
        lines.append(f"{pair.selected_package.local_name}:")
        lines.extend(f"  - {note}" for note in pair.notes)
    return lines


def _method_label(package: Package) -> str:
    return package.match_method.value.replace("_", " ")


def render_packages(packages: Sequence[Package]) -> list[str]:
    lines = _heading(f"Mods ({len(packages)})")
    for package in packages:
        side = "server" if package.is_server_component else "client"
        if package.is_matched:
            detail = f"{package.match_confidence}% via {_method_label(package)}"
            lines.append(
                f"[{package.status.value}] {package.display_name} v{package.local_version}"
                f" ({side}) {detail}"
            )
        else:
            reason = f": {package.incompatibility_reason}" if package.incompatibility_reason else ""
            lines.append(
                f"[{package.status.value}] {package.local_name} v{package.local_version}"
                f" ({side}){reason}"
            )
        lines.extend(f"    warning: {warning}" for warning in package.load_warnings)
    return lines


def render_unverified(packages: Sequence[Package]) -> list[str]:
    unverified = [
        package
        for package in packages
        if package.status in {PackageStatus.NO_MATCH, PackageStatus.UNKNOWN}
    ]
    if not unverified:
        return []
    lines = _heading("Mods not found on Forge")
    lines.extend(
        f"{package.local_name} by {package.local_author or 'unknown'} ({package.file_path})"
        for package in unverified
    )
    return lines


def render_platform_incompatible(packages: Sequence[Package]) -> list[str]:
    if not packages:
        return []
    lines = _heading("Incompatible with this SPT version")
    for package in packages:
        lines.append(f"{package.display_name}: {package.incompatibility_reason}")
        if package.compatible_version:
            link = f" {package.compatible_version_link}" if package.compatible_version_link else ""
            lines.append(f"    compatible release: v{package.compatible_version}{link}")
    return lines


def render_updates(packages: Sequence[Package]) -> list[str]:
    rows = [
        package
        for package in packages
        if package.is_matched and package.update_status is not UpdateStatus.UNKNOWN
    ]
    if not rows:
        return []
    lines = _heading("Updates")
    width = max(len(package.display_name) for package in rows)
    for package in rows:
        label = _UPDATE_LABELS.get(package.update_status, package.update_status.value)
        latest = package.latest_version or "-"
        line = f"{package.display_name:<{width}}  {package.local_version:>10} -> {latest:<10} {label}"
        if package.update_status is UpdateStatus.UPDATE_AVAILABLE and package.download_link:
            line += f"  {package.download_link}"
        lines.append(line.rstrip())
        if package.blocking_mods:
            blockers = ", ".join(mod.name for mod in package.blocking_mods)
            lines.append(f"    blocked by: {blockers}")
    return lines


def _render_node(node: DependencyNode, depth: int) -> Iterable[str]:
    marker = "" if node.is_installed else " (missing)"
    version = node.dependency.latest_version if node.dependency else node.package.local_version
    yield f"{'  ' * depth}- {node.package.display_name} {version or ''}".rstrip() + marker
    for child in node.children:
        yield from _render_node(child, depth + 1)


def render_dependencies(result: DependencyAnalysisResult) -> list[str]:
    lines: list[str] = []
    roots = [root for root in result.roots if root.children]
    if roots:
        lines.extend(_heading("Dependency tree"))
        for root in roots:
            lines.append(root.package.display_name)
            for child in root.children:
                lines.extend(_render_node(child, 1))

    if result.conflicts:
        lines.extend(_heading("Dependency conflicts"))
        lines.extend(
            f"{conflict.name} ({conflict.guid}): {conflict.description}"
            for conflict in result.conflicts
        )

    if result.missing:
        lines.extend(_heading("Missing dependencies"))
        for missing in result.missing:
            lines.append(
                f"{missing.name} v{missing.recommended_version}"
                f" required by {', '.join(missing.required_by)}"
            )
            if missing.download_link:
                lines.append(f"    {missing.download_link}")
    return lines


def render_report(report: CheckReport) -> str:
    lines = [f"SPT version: {report.platform_version}"]
    if report.platform_updates:
        newest = report.platform_updates[0]
        lines.append(f"A newer SPT version is available: {newest.version}")

    lines.extend(render_pairs(report.pairs))
    lines.extend(render_packages(report.packages))
    lines.extend(render_unverified(report.packages))
    lines.extend(render_platform_incompatible(report.platform_incompatible))
    lines.extend(render_updates(report.packages))
    lines.extend(render_dependencies(report.dependencies))
    if not report.dependencies.has_issues:
        lines.extend(["", "No dependency issues found."])
    return "\n".join(lines)
