"""TEI rule checks for single documents."""

from dataclasses import dataclass, field
from typing import Optional

from lxml import etree


@dataclass
class Message:
    """One finding. ``column`` is None where lxml only records the line."""
    line: int
    column: Optional[int]
    text: str

    def to_dict(self) -> dict:
        return {"line": self.line, "column": self.column, "text": self.text}


@dataclass
class Report:
    """Findings for one document, split by severity."""
    errors: list[Message] = field(default_factory=list)
    warnings: list[Message] = field(default_factory=list)
    info: list[Message] = field(default_factory=list)

    def is_valid(self) -> bool:
        return not self.errors

    def push(self, line: int, column: Optional[int], text: str, severity: str = "error"):
        msg = Message(line=line, column=column, text=text)
        if severity == "error":
            self.errors.append(msg)
        elif severity == "warning":
            self.warnings.append(msg)
        elif severity == "info":
            self.info.append(msg)
        else:
            raise ValueError(f"Unknown severity: {severity}")

    def to_dict(self) -> dict:
        return {
            "errors": [m.to_dict() for m in self.errors],
            "warnings": [m.to_dict() for m in self.warnings],
            "info": [m.to_dict() for m in self.info],
        }


def run(xml: str | bytes) -> Report:
    """Check a document. Malformed XML is reported, never raised."""
    rep = Report()
    try:
        if isinstance(xml, str):
            has_bom = xml.startswith("\ufeff")
            data = xml.lstrip("\ufeff").encode("utf-8")
            parser = _make_parser(encoding="utf-8")
        else:
            has_bom = xml.startswith(b"\xef\xbb\xbf")
            data = xml
            parser = _make_parser()
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as e:
        rep.push(e.lineno or 0, e.offset or 0, f"XML parsing error: {e}")
        return rep
    except ValueError as e:
        rep.push(0, 0, f"XML parsing error: {e}")
        return rep

    if has_bom:
        rep.push(1, 1, "UTF-8 BOM detected (harmless but unnecessary)", "info")

    _check_root(root, rep)
    for element in root.iter():
        if isinstance(element.tag, str):
            _check_element(element, rep)
    return rep


def validate_file(path: str) -> Report:
    with open(path, "rb") as f:
        return run(f.read())


def _make_parser(encoding: Optional[str] = None) -> etree.XMLParser:
    return etree.XMLParser(
        encoding=encoding, resolve_entities=False, no_network=True, huge_tree=True,
    )


def _local(element) -> str:
    return etree.QName(element).localname


def _check_root(root, rep: Report):
    if "tei" not in _local(root).lower():
        rep.push(
            root.sourceline or 0, None,
            f"Root element should contain 'tei' (case-insensitive), found <{_local(root)}>",
            "warning",
        )


def _check_element(element, rep: Report):
    name = _local(element)
    line = element.sourceline or 0
    if name == "pb":
        if element.get("ed") is None:
            rep.push(line, None, "<pb> missing @ed")
        if element.get("n") is None:
            rep.push(line, None, "<pb> missing @n")
    elif name == "head":
        if not any(
            isinstance(a.tag, str) and _local(a) == "div" for a in element.iterancestors()
        ):
            rep.push(line, None, "<head> should be inside <div>", "warning")
