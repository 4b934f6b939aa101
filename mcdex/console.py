"""Plain-text reports for removal analysis, pack contents and project listings."""

from __future__ import annotations

from datetime import datetime, timezone

from mcdex.models import DepInfo, FileInfo, ManifestFileEntry, ProjectInfo, RemovalMode

_DEPENDENTS_HEADING = {
    RemovalMode.SINGLE: "The following mods depend on a mod being removed and will no longer work:",
    RemovalMode.RECURSIVE: "The following dependent mods will also be removed:",
}

_DEPENDENCIES_HEADING = {
    RemovalMode.SINGLE: (
        "The following mods were added as a dependency for a mod being removed "
        "and are no longer required:"
    ),
    RemovalMode.RECURSIVE: "The following dependencies will also be removed:",
}


def quote_join(entries: list[ManifestFileEntry], sep: str = ", ") -> str:
    return sep.join(f'"{e.label}"' for e in entries)


def _entry_line(entry: ManifestFileEntry) -> str:
    return f'\t[{entry.file_id:7d}] "{entry.label}" ({entry.filename})'


def format_removal_report(info: DepInfo, mode: RemovalMode) -> list[str]:
    """Render a DepInfo as the lines shown before anything is removed.

    Sections with nothing to say are left out.
    """
    lines = ["", "Preparing to remove the mod(s):"]
    lines.extend(_entry_line(t) for t in info.targets)

    if info.dependents:
        lines += ["", _DEPENDENTS_HEADING[mode]]
        for entry, parents in info.dependents.items():
            lines.append(_entry_line(entry))
            lines.append(f"\t\tDepends on {quote_join(parents)}")

    if info.dependencies:
        lines += ["", _DEPENDENCIES_HEADING[mode]]
        for entry, parents in info.dependencies.items():
            lines.append(_entry_line(entry))
            lines.append(f"\t\tRequired by {quote_join(parents)}")

    if info.optionals:
        lines += ["", "The following mods optionally depend on a mod being removed:"]
        for entry, targets in info.optionals.items():
            lines.append(
                f'\t[{entry.file_id:7d}] "{entry.label}" optionally depends on {quote_join(targets)}'
            )

    return lines


def format_timestamp(tstamp: int | None) -> str:
    if not tstamp:
        return ""
    return datetime.fromtimestamp(tstamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_pack_listing(
    rows: list[tuple[ManifestFileEntry, ProjectInfo | None, FileInfo | None]],
) -> list[str]:
    """One line per manifest file, sorted by mod name."""
    lines = ["  File ID || Project ID || Name || Slug || Description || Released || Filename"]
    ordered = sorted(rows, key=lambda r: (r[0].label.lower(), r[0].file_id))
    for entry, project, file in ordered:
        slug = project.slug if project else ""
        desc = project.description if project else ""
        released = format_timestamp(file.tstamp) if file else ""
        filename = entry.filename or (file.filename if file else "")
        lines.append(
            f"{entry.file_id:9d} || {entry.project_id:10d} || {entry.label} || "
            f"{slug} || {desc} || {released} || {filename}"
        )
    return lines


def format_project_listing(projects: list[ProjectInfo]) -> list[str]:
    return [f"{p.slug} | {p.description} | {p.downloads:,} downloads" for p in projects]
