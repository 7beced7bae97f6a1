"""
Line-oriented SDP handling for relayed offers and answers.

Only the parts of the grammar needed to reshape a description are modelled:
the ``m=`` line of each media section, its ``a=rtpmap`` payload mappings and
its ``a=fmtp`` parameter lines. Everything else is carried through verbatim,
including the original line terminator.
"""

import re
from typing import Dict, Iterable, List, Optional

from logging_config import get_logger

logger = get_logger(__name__)

RTPMAP_RE = re.compile(r"^a=rtpmap:(\d+)\s+([^/\s]+)/")
FMTP_RE = re.compile(r"^a=fmtp:(\d+)(?:\s+(.*))?$")


class SdpError(ValueError):
    """Raised when a media line cannot be parsed."""


class MediaSection:
    def __init__(self, lines: List[str]):
        self.lines = lines
        parts = lines[0][2:].split()
        if len(parts) < 3:
            raise SdpError(f"Malformed media line: {lines[0]!r}")
        self.kind, self.port, self.proto = parts[0], parts[1], parts[2]
        self._formats = parts[3:]

    @property
    def formats(self) -> List[str]:
        return list(self._formats)

    @formats.setter
    def formats(self, value: Iterable[str]) -> None:
        self._formats = list(value)
        self.lines[0] = "m=" + " ".join([self.kind, self.port, self.proto] + self._formats)

    def rtpmap(self) -> Dict[str, str]:
        """Payload id -> codec name, in section order."""
        mapping = {}
        for line in self.lines[1:]:
            match = RTPMAP_RE.match(line)
            if match:
                mapping.setdefault(match.group(1), match.group(2))
        return mapping

    def find_payload(self, codec: str) -> Optional[str]:
        for payload, name in self.rtpmap().items():
            if name == codec:
                return payload
        return None

    def fmtp_index(self, payload: str) -> Optional[int]:
        for index, line in enumerate(self.lines):
            match = FMTP_RE.match(line)
            if match and match.group(1) == payload:
                return index
        return None


class SessionDescription:
    def __init__(self, session: List[str], media: List[MediaSection], eol: str, trailing: bool):
        self.session = session
        self.media = media
        self.eol = eol
        self.trailing = trailing

    @classmethod
    def parse(cls, sdp: str) -> "SessionDescription":
        eol = "\r\n" if "\r\n" in sdp else "\n"
        trailing = sdp.endswith(eol)
        lines = sdp.split(eol)
        if trailing:
            lines.pop()

        session: List[str] = []
        sections: List[List[str]] = []
        for line in lines:
            if line.startswith("m="):
                sections.append([line])
            elif sections:
                sections[-1].append(line)
            else:
                session.append(line)
        return cls(session, [MediaSection(section) for section in sections], eol, trailing)

    def serialize(self) -> str:
        lines = list(self.session)
        for media in self.media:
            lines.extend(media.lines)
        text = self.eol.join(lines)
        return text + self.eol if self.trailing else text


def parse_fmtp_params(config: str) -> Dict[str, Optional[str]]:
    params: Dict[str, Optional[str]] = {}
    for token in config.split(";"):
        token = token.strip()
        if not token:
            continue
        if "=" in token:
            key, value = token.split("=", 1)
            params[key.strip()] = value.strip()
        else:
            params[token] = None
    return params


def write_fmtp_params(params: Dict[str, Optional[str]]) -> str:
    return ";".join(key if value is None else f"{key}={value}" for key, value in params.items())


def prioritize_codecs(sdp: str, priority: List[str]) -> str:
    """Move the payload ids of the preferred video codecs to the front of each m=video line.

    Codecs are matched by the rtpmap token before ``/`` (case-sensitive) and
    collected in ``priority`` order; the remaining ids keep their relative
    order. Sections with no preferred codec are left alone and the input is
    returned as-is when nothing changes.
    """
    if not sdp or not priority:
        return sdp

    description = SessionDescription.parse(sdp)
    changed = False
    for media in description.media:
        if media.kind != "video":
            continue
        formats = media.formats
        preferred: List[str] = []
        for codec in priority:
            payload = media.find_payload(codec)
            if payload is not None and payload in formats and payload not in preferred:
                preferred.append(payload)
        if not preferred:
            continue
        reordered = preferred + [payload for payload in formats if payload not in preferred]
        if reordered != formats:
            media.formats = reordered
            changed = True
            logger.info(f"Setting video codec priority. \"{media.lines[0]}\"")

    return description.serialize() if changed else sdp


def set_opus_bitrate(sdp: str, max_average_bitrate: int) -> str:
    """Set ``maxaveragebitrate`` on the fmtp line of the Opus payload."""
    if not sdp or not max_average_bitrate or max_average_bitrate <= 0:
        return sdp

    description = SessionDescription.parse(sdp)
    changed = False
    for media in description.media:
        payload = media.find_payload("opus")
        if payload is None:
            continue
        index = media.fmtp_index(payload)
        if index is None:
            continue
        params = parse_fmtp_params(FMTP_RE.match(media.lines[index]).group(2) or "")
        params["maxaveragebitrate"] = str(int(max_average_bitrate))
        config = write_fmtp_params(params)
        media.lines[index] = f"a=fmtp:{payload} {config}"
        changed = True
        logger.info(f"FMTP for payload {payload} set to: {config}")

    return description.serialize() if changed else sdp
