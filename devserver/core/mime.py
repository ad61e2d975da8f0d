"""
MIME registry
Static two-way mapping between file extensions and content types
"""

import os
from types import MappingProxyType
from typing import Dict, List, Tuple

DEFAULT_TYPE = "application/octet-stream"

# Registration order matters: the first type listed for an extension wins,
# and extensions_for_type() returns extensions in the order given here.
_REGISTRY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    # text
    ("text/html", ("html", "htm", "shtml")),
    ("text/css", ("css",)),
    ("text/javascript", ("js", "mjs", "cjs")),
    ("text/plain", ("txt", "text", "conf", "def", "list", "log", "ini")),
    ("text/csv", ("csv",)),
    ("text/markdown", ("md", "markdown")),
    ("text/xml", ("xml",)),
    ("text/calendar", ("ics", "ifb")),
    ("text/vtt", ("vtt",)),
    ("text/yaml", ("yaml", "yml")),
    # application
    ("application/javascript", ("js", "mjs")),
    ("application/json", ("json", "map")),
    ("application/manifest+json", ("webmanifest",)),
    ("application/ld+json", ("jsonld",)),
    ("application/xml", ("xml", "xsl", "xsd", "rng")),
    ("application/xhtml+xml", ("xhtml", "xht")),
    ("application/wasm", ("wasm",)),
    ("application/pdf", ("pdf",)),
    ("application/zip", ("zip",)),
    ("application/gzip", ("gz",)),
    ("application/x-tar", ("tar",)),
    ("application/x-7z-compressed", ("7z",)),
    ("application/rtf", ("rtf",)),
    ("application/msword", ("doc", "dot")),
    ("application/vnd.ms-excel", ("xls", "xlm", "xla", "xlc", "xlt", "xlw")),
    ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", ("docx",)),
    ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ("xlsx",)),
    ("application/octet-stream", ("bin", "dms", "lrf", "mar", "so", "dist", "distz", "pkg", "bpk", "dump", "elc", "deploy", "exe", "dll", "deb", "dmg", "iso", "img", "msi", "msp", "msm", "buffer")),
    # images
    ("image/apng", ("apng",)),
    ("image/avif", ("avif",)),
    ("image/bmp", ("bmp", "dib")),
    ("image/gif", ("gif",)),
    ("image/jpeg", ("jpeg", "jpg", "jpe")),
    ("image/png", ("png",)),
    ("image/svg+xml", ("svg", "svgz")),
    ("image/tiff", ("tif", "tiff")),
    ("image/webp", ("webp",)),
    ("image/x-icon", ("ico",)),
    ("image/vnd.microsoft.icon", ("ico",)),
    # fonts
    ("font/otf", ("otf",)),
    ("font/ttf", ("ttf",)),
    ("font/woff", ("woff",)),
    ("font/woff2", ("woff2",)),
    ("application/vnd.ms-fontobject", ("eot",)),
    # audio
    ("audio/aac", ("aac",)),
    ("audio/flac", ("flac",)),
    ("audio/midi", ("mid", "midi", "kar", "rmi")),
    ("audio/mpeg", ("mpga", "mp2", "mp2a", "mp3", "m2a", "m3a")),
    ("audio/mp4", ("m4a", "mp4a")),
    ("audio/ogg", ("oga", "ogg", "spx", "opus")),
    ("audio/wav", ("wav",)),
    ("audio/x-wav", ("wav",)),
    ("audio/webm", ("weba",)),
    # video
    ("video/mp4", ("mp4", "mp4v", "mpg4")),
    ("video/mpeg", ("mpeg", "mpg", "mpe", "m1v", "m2v")),
    ("video/ogg", ("ogv",)),
    ("video/quicktime", ("qt", "mov")),
    ("video/webm", ("webm",)),
    ("video/x-msvideo", ("avi",)),
    ("video/mp2t", ("ts", "m2t", "m2ts", "mts")),
    # models / misc used by web projects
    ("model/gltf+json", ("gltf",)),
    ("model/gltf-binary", ("glb",)),
    ("application/vnd.apple.mpegurl", ("m3u8",)),
)


def _build_maps():
    by_ext: Dict[str, List[str]] = {}
    by_type: Dict[str, List[str]] = {}
    for content_type, extensions in _REGISTRY:
        for ext in extensions:
            types = by_ext.setdefault(ext, [])
            if content_type not in types:
                types.append(content_type)
            exts = by_type.setdefault(content_type, [])
            if ext not in exts:
                exts.append(ext)

    def freeze(table):
        return MappingProxyType({key: tuple(values) for key, values in table.items()})

    return freeze(by_ext), freeze(by_type)


_TYPES_BY_EXTENSION, _EXTENSIONS_BY_TYPE = _build_maps()


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext.startswith("."):
        ext = ext[1:]
    return ext


def _normalize_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def types_for_extension(ext: str) -> List[str]:
    """All content types registered for an extension, in registration order"""
    return list(_TYPES_BY_EXTENSION.get(_normalize_extension(ext), ()))


def type_for_extension(ext: str) -> str:
    """First registered content type for an extension, or the generic fallback"""
    types = _TYPES_BY_EXTENSION.get(_normalize_extension(ext))
    if not types:
        return DEFAULT_TYPE
    return types[0]


def extensions_for_type(content_type: str) -> List[str]:
    """All extensions registered for a content type, in registration order"""
    return list(_EXTENSIONS_BY_TYPE.get(_normalize_type(content_type), ()))


def type_for_path(path: str) -> str:
    return type_for_extension(os.path.splitext(path)[1])
