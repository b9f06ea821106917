from __future__ import annotations

import json

from yt_transcriber.types import TranscriptRecord

FORMATS = ("json", "text", "timestamped", "markdown", "srt", "vtt")

MEDIA_TYPES = {
    "json": "application/json",
    "text": "text/plain; charset=utf-8",
    "timestamped": "text/plain; charset=utf-8",
    "markdown": "text/markdown; charset=utf-8",
    "srt": "application/x-subrip; charset=utf-8",
    "vtt": "text/vtt; charset=utf-8",
}


def _format_timestamp(seconds: float) -> str:
    whole = int(max(seconds, 0))
    hours, rem = divmod(whole, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _format_duration(seconds: float) -> str:
    whole = int(max(seconds, 0))
    hours, rem = divmod(whole, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def _format_cue_time(seconds: float, separator: str) -> str:
    millis = int(round(max(seconds, 0) * 1000))
    hours, rem = divmod(millis, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{ms:03d}"


def to_text(record: TranscriptRecord) -> str:
    return record.transcript.text.strip() + "\n"


def to_timestamped(record: TranscriptRecord) -> str:
    segments = record.transcript.segments
    if not segments:
        return to_text(record)
    blocks = [
        f"[{_format_timestamp(s.start)} - {_format_timestamp(s.end)}] {s.text.strip()}"
        for s in segments
    ]
    return "\n\n".join(blocks) + "\n"


def to_markdown(record: TranscriptRecord) -> str:
    lines: list[str] = []
    if record.title:
        lines.append(f"# {record.title}")
        lines.append("")

    meta_lines: list[str] = []
    if record.channel:
        meta_lines.append(f"**Channel**: {record.channel}")
    if record.duration:
        meta_lines.append(f"**Duration**: {_format_duration(record.duration)}")
    if record.transcript.language:
        meta_lines.append(f"**Language**: {record.transcript.language}")
    if meta_lines:
        lines.extend(meta_lines)
        lines.append("")
        lines.append("---")
        lines.append("")

    lines.append("## Transcript")
    lines.append("")

    if not record.transcript.segments:
        lines.append(record.transcript.text or "")
        return "\n".join(lines).strip() + "\n"

    for segment in record.transcript.segments:
        lines.append(f"- [{_format_timestamp(segment.start)}] {segment.text.strip()}")
    return "\n".join(lines).strip() + "\n"


def to_srt(record: TranscriptRecord) -> str:
    cues = [
        f"{index}\n{_format_cue_time(s.start, ',')} --> {_format_cue_time(s.end, ',')}\n{s.text.strip()}"
        for index, s in enumerate(record.transcript.segments, start=1)
    ]
    if not cues:
        return ""
    return "\n\n".join(cues) + "\n"


def to_vtt(record: TranscriptRecord) -> str:
    cues = [
        f"{_format_cue_time(s.start, '.')} --> {_format_cue_time(s.end, '.')}\n{s.text.strip()}"
        for s in record.transcript.segments
    ]
    return "WEBVTT\n\n" + "\n\n".join(cues) + ("\n" if cues else "")


def render(record: TranscriptRecord, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(record.to_payload(), ensure_ascii=False, indent=2)
    if fmt == "text":
        return to_text(record)
    if fmt == "timestamped":
        return to_timestamped(record)
    if fmt == "markdown":
        return to_markdown(record)
    if fmt == "srt":
        return to_srt(record)
    if fmt == "vtt":
        return to_vtt(record)
    raise ValueError(f"Unsupported format: {fmt}")
