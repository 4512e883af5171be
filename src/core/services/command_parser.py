"""cURL-style command parsing.

Responsibilities:
- Normalize pasted commands (line continuations, whitespace).
- Extract method, URL, headers and body into a `RequestTemplate`.
- Validate commands independently of parsing, with a specific reason per
  violation.
- Suggest (never apply) a `{host}` placeholder for commands that lack one.
- Format a template back into a command that re-parses to the same template.

Parsing works on shell-like tokens: single quotes are literal, double quotes
honour backslash escapes, adjacent pieces concatenate (`-H'X: 1'` is one
token).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from core.domain.models import RequestTemplate, ValidationResult

PLACEHOLDER = "{host}"
COMMAND_VERB = "curl"

_METHOD_FLAGS = frozenset({"-X", "--request"})
# Header flags; the value is the implied header name for shorthand flags.
_HEADER_FLAGS: dict[str, str | None] = {
    "-H": None,
    "--header": None,
    "-A": "User-Agent",
    "--user-agent": "User-Agent",
    "-e": "Referer",
    "--referer": "Referer",
    "-b": "Cookie",
    "--cookie": "Cookie",
}
_BODY_FLAGS = frozenset({"-d", "--data", "--data-raw", "--data-binary", "--data-ascii"})
_URL_FLAGS = frozenset({"--url"})
_IGNORED_ARG_FLAGS = frozenset({"-m", "--max-time", "--connect-timeout", "-o", "--output"})
_ZERO_ARG_FLAGS = frozenset(
    {
        "-L",
        "--location",
        "-k",
        "--insecure",
        "-s",
        "--silent",
        "-S",
        "--show-error",
        "-i",
        "--include",
        "-v",
        "--verbose",
        "-f",
        "--fail",
        "-g",
        "--globoff",
        "--compressed",
    }
)
_ARG_FLAGS = _METHOD_FLAGS | frozenset(_HEADER_FLAGS) | _BODY_FLAGS | _URL_FLAGS | _IGNORED_ARG_FLAGS
_SHORT_ARG_FLAGS = frozenset(f for f in _ARG_FLAGS if not f.startswith("--"))

_TOKEN_RE = re.compile(r"""(?:'[^']*'|"(?:[^"\\]|\\.)*"|[^\s'"]|['"])+""")
_PIECE_RE = re.compile(r"""'([^']*)'|"((?:[^"\\]|\\.)*)"|([^'"]+|['"])""")
_DQ_ESCAPE_RE = re.compile(r"""\\(["\\$`])""")
_CONTINUATION_RE = re.compile(r"\\[ \t]*\n")
_WS_RE = re.compile(r"\s+")
_METHOD_RE = re.compile(r"^[A-Za-z]+$")

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_LOOPBACK_RE = re.compile(r"^localhost(?::\d+)?(?:[/?#]|$)", re.IGNORECASE)
_SCHEME_AUTHORITY_RE = re.compile(r"https?://[^/\s'\"?#]+", re.IGNORECASE)
_HOSTNAME_LIKE_RE = re.compile(
    r"(?<![\w.@/=?&-])(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+"
    r"[a-zA-Z]{2,63}(?::\d{1,5})?(?![\w-])"
)
_ROOT_PATH_RE = re.compile(r"(?<=\s)(['\"]?)(/[^\s'\"]*)")


@dataclass(frozen=True)
class _Token:
    raw: str
    value: str
    quoted: bool

    @property
    def is_flag(self) -> bool:
        return not self.quoted and len(self.value) > 1 and self.value.startswith("-")


def _unquote(raw: str) -> str:
    out: list[str] = []
    for match in _PIECE_RE.finditer(raw):
        single, double, bare = match.groups()
        if single is not None:
            out.append(single)
        elif double is not None:
            out.append(_DQ_ESCAPE_RE.sub(r"\1", double))
        else:
            out.append(bare)
    return "".join(out)


def _tokenize(text: str) -> list[_Token]:
    return [
        _Token(raw=m.group(0), value=_unquote(m.group(0)), quoted=m.group(0)[0] in "'\"")
        for m in _TOKEN_RE.finditer(text)
    ]


def _split_flag(value: str) -> tuple[str, str | None]:
    """Split `--name=value` and attached short forms (`-XPOST`)."""

    if value.startswith("--"):
        name, sep, attached = value.partition("=")
        return name, (attached if sep else None)
    if len(value) > 2 and value[:2] in _SHORT_ARG_FLAGS:
        return value[:2], value[2:]
    return value, None


def _is_zero_arg(name: str) -> bool:
    if name in _ZERO_ARG_FLAGS:
        return True
    # Bundled short flags, e.g. -sSL
    if re.fullmatch(r"-[A-Za-z]{2,}", name):
        return all(f"-{c}" in _ZERO_ARG_FLAGS for c in name[1:])
    return False


def _split_header(raw: str) -> tuple[str, str] | None:
    name, sep, value = raw.partition(":")
    name = name.strip()
    if not sep or not name:
        return None
    return name, value.strip()


def _consume(work: list[_Token], names: frozenset[str] | dict) -> list[tuple[str, str | None]]:
    """Remove every flag in `names` (and its argument) from `work`, in order."""

    found: list[tuple[str, str | None]] = []
    i = 0
    while i < len(work):
        token = work[i]
        if token.is_flag:
            name, attached = _split_flag(token.value)
            if name in names:
                if attached is not None:
                    found.append((name, attached))
                    del work[i]
                elif i + 1 < len(work) and not work[i + 1].is_flag:
                    found.append((name, work[i + 1].value))
                    del work[i : i + 2]
                else:
                    found.append((name, None))
                    del work[i]
                continue
        i += 1
    return found


def _drop_verb(tokens: list[_Token]) -> list[_Token]:
    if tokens and not tokens[0].quoted and tokens[0].value.lower() == COMMAND_VERB:
        return tokens[1:]
    return tokens


def _pick_url(remainder: list[_Token]) -> str:
    if remainder and remainder[0].quoted:
        return remainder[0].value
    candidates = [t for t in remainder if not t.is_flag]
    for token in candidates:
        if _SCHEME_RE.match(token.value) or token.value.startswith("/"):
            return token.value
    return candidates[0].value if candidates else ""


def normalize_command(text: str) -> str:
    """Collapse a pasted command into a single line.

    Joins backslash-continued lines, folds CRLF, collapses whitespace runs and
    trims. Applying it twice gives the same result as applying it once.
    """

    joined = _CONTINUATION_RE.sub(" ", (text or "").replace("\r\n", "\n").replace("\r", "\n"))
    return _WS_RE.sub(" ", joined).strip()


def split_command_text(text: str) -> list[str]:
    """Split a multi-command text block into one normalized command per line."""

    joined = _CONTINUATION_RE.sub(" ", (text or "").replace("\r\n", "\n").replace("\r", "\n"))
    commands = [normalize_command(line) for line in joined.split("\n")]
    return [c for c in commands if c]


def parse_command(text: str) -> RequestTemplate:
    """Parse command text into a `RequestTemplate`.

    Consumption order: method, headers, body, known no-argument flags. The URL
    is then picked from what is left: a leading quoted string, else the first
    scheme-prefixed or root-relative token, else the first non-flag token.
    An empty URL is allowed here; `validate_command` is what rejects it.
    """

    source = (text or "").strip()
    work = _drop_verb(_tokenize(normalize_command(source)))

    method = "GET"
    for _, value in _consume(work, _METHOD_FLAGS):
        if value:
            method = value.upper()

    headers: dict[str, str] = {}
    for name, value in _consume(work, _HEADER_FLAGS):
        if value is None:
            continue
        implied = _HEADER_FLAGS[name]
        if implied is not None:
            headers[implied] = value.strip()
            continue
        parsed = _split_header(value)
        if parsed:
            headers[parsed[0]] = parsed[1]

    bodies = [value for _, value in _consume(work, _BODY_FLAGS) if value is not None]
    body = "&".join(bodies) if bodies else None

    url_flags = [value for _, value in _consume(work, _URL_FLAGS) if value is not None]
    _consume(work, _IGNORED_ARG_FLAGS)
    work = [t for t in work if not (t.is_flag and _is_zero_arg(_split_flag(t.value)[0]))]

    url = url_flags[-1] if url_flags else _pick_url(work)

    return RequestTemplate(
        method=method,
        url=url.strip(),
        headers=headers,
        body=body,
        source=source,
    )


def has_placeholder(text: str) -> bool:
    return PLACEHOLDER in (text or "")


def auto_detect_placeholder(text: str) -> str:
    """Suggest a version of `text` with the `{host}` placeholder inserted.

    Tries, in order: the first scheme + authority, the first dotted
    hostname-looking word (not one inside a query value such as
    `?file=report.pdf`), the first root-relative path. Returns the input
    unchanged if it already has a placeholder or nothing matches. Advisory
    only: the caller decides whether to accept the suggestion.
    """

    if has_placeholder(text):
        return text

    if _SCHEME_AUTHORITY_RE.search(text):
        return _SCHEME_AUTHORITY_RE.sub(PLACEHOLDER, text, count=1)

    if _HOSTNAME_LIKE_RE.search(text):
        return _HOSTNAME_LIKE_RE.sub(PLACEHOLDER, text, count=1)

    if _ROOT_PATH_RE.search(text):
        return _ROOT_PATH_RE.sub(lambda m: f"{m.group(1)}{PLACEHOLDER}{m.group(2)}", text, count=1)

    return text


def _is_acceptable_url(url: str) -> bool:
    return bool(
        url.startswith("/")
        or url.startswith(PLACEHOLDER)
        or _SCHEME_RE.match(url)
        or _LOOPBACK_RE.match(url)
    )


def validate_command(text: str) -> ValidationResult:
    """Check command text without going through `parse_command`."""

    normalized = normalize_command(text)
    if not normalized:
        return ValidationResult.fail("Command cannot be empty")

    tokens = _tokenize(normalized)
    if tokens[0].quoted or tokens[0].value.lower() != COMMAND_VERB:
        return ValidationResult.fail(f"Command must start with '{COMMAND_VERB}'")

    positionals: list[_Token] = []
    url_from_flag: str | None = None
    i = 1
    while i < len(tokens):
        token = tokens[i]
        if not token.is_flag:
            positionals.append(token)
            i += 1
            continue

        name, attached = _split_flag(token.value)
        if _is_zero_arg(name):
            if attached is not None:
                return ValidationResult.fail(f"Flag {name} does not take an argument")
            i += 1
            continue
        if name not in _ARG_FLAGS:
            return ValidationResult.fail(f"Unrecognized flag: {name}")

        if attached is not None:
            arg = attached
            i += 1
        elif i + 1 < len(tokens) and not tokens[i + 1].is_flag:
            arg = tokens[i + 1].value
            i += 2
        else:
            return ValidationResult.fail(f"Flag {name} requires an argument")

        if name in _METHOD_FLAGS and not _METHOD_RE.match(arg):
            return ValidationResult.fail(f"Invalid method: {arg!r}")
        if name in ("-H", "--header") and _split_header(arg) is None:
            return ValidationResult.fail(f"Header {arg!r} must be in 'Name: value' form")
        if name in _URL_FLAGS:
            url_from_flag = arg

    url = (url_from_flag if url_from_flag is not None else _pick_url(positionals)).strip()
    if not url:
        return ValidationResult.fail("Command must contain a URL")
    if not _is_acceptable_url(url):
        return ValidationResult.fail(
            f"URL {url!r} must be absolute, root-relative, start with {PLACEHOLDER}, "
            "or target localhost"
        )
    return ValidationResult.ok()


def _quote(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")
    return f'"{escaped}"'


def format_command(template: RequestTemplate) -> str:
    """Render a template as a command that `parse_command` reads back equivalently."""

    parts = [COMMAND_VERB]
    method = (template.method or "GET").upper()
    if method != "GET":
        parts.append(f"-X {method}")
    for key, value in template.headers.items():
        parts.append(f"-H {_quote(f'{key}: {value}')}")
    if template.body is not None:
        parts.append(f"-d {_quote(template.body)}")
    parts.append(_quote(template.url))
    return " ".join(parts)
