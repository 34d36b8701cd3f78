"""Tests for shape extraction from XML text."""

import pytest

from xmlatlas.errors import DocumentReadError, ParseError
from xmlatlas.shape import ShapeNode, extract, extract_file


class TestExtract:
    def test_simple_book(self):
        xml = """
        <book>
            <title>Test Book</title>
            <author>Test Author</author>
            <year>2024</year>
        </book>
        """
        node = extract(xml)
        assert node.name == "book"
        assert [c.name for c in node.children] == ["title", "author", "year"]

    def test_attribute_keys_only(self):
        node = extract('<book id="123" type="fiction" lang="en"></book>')
        assert node.attribute_keys == frozenset({"id", "type", "lang"})

    def test_attribute_order_irrelevant(self):
        a = extract('<book id="1" type="fiction" lang="en"/>')
        b = extract('<book lang="en" type="fiction" id="2"/>')
        assert a == b

    def test_values_and_text_ignored(self):
        a = extract('<book id="123"><title>Book One</title></book>')
        b = extract('<book id="456"><title>Book Two</title></book>')
        assert a == b

    def test_comments_and_pis_excluded(self):
        xml = """<?xml version="1.0"?>
        <book><!-- note --><?render fast?><title><![CDATA[x < y]]></title></book>"""
        node = extract(xml)
        assert [c.name for c in node.children] == ["title"]
        assert node.children[0].children == []

    def test_children_keep_document_order(self):
        node = extract("<r><b/><a/><b/></r>")
        assert [c.name for c in node.children] == ["b", "a", "b"]

    def test_empty_element(self):
        node = extract("<book><empty/></book>")
        assert node.children[0] == ShapeNode(name="empty")

    def test_deeply_nested(self):
        node = extract("<root><l1><l2><l3><l4>deep</l4></l3></l2></l1></root>")
        names = []
        while node.children:
            node = node.children[0]
            names.append(node.name)
        assert names == ["l1", "l2", "l3", "l4"]

    def test_nesting_past_recursion_limit(self):
        depth = 1500
        node = extract("<e>" * depth + "</e>" * depth)
        levels = 1
        while node.children:
            node = node.children[0]
            levels += 1
        assert levels == depth

    def test_case_sensitive_names(self):
        assert extract("<Book/>") != extract("<book/>")

    def test_namespace_prefix_is_part_of_name(self):
        xml = (
            '<tei:TEI xmlns:tei="http://www.tei-c.org/ns/1.0">'
            '<tei:text xml:id="t1"/></tei:TEI>'
        )
        node = extract(xml)
        assert node.name == "tei:TEI"
        assert node.children[0].name == "tei:text"
        assert node.children[0].attribute_keys == frozenset({"xml:id"})

    def test_default_namespace_uses_local_name(self):
        node = extract('<TEI xmlns="http://www.tei-c.org/ns/1.0"><text/></TEI>')
        assert node.name == "TEI"
        assert node.children[0].name == "text"
        assert node.attribute_keys == frozenset()

    def test_encoding_declaration_in_str(self):
        node = extract('<?xml version="1.0" encoding="ISO-8859-1"?><doc/>')
        assert node.name == "doc"

    def test_bytes_input(self):
        node = extract('<?xml version="1.0" encoding="UTF-8"?><doc a="é"/>'.encode("utf-8"))
        assert node.attribute_keys == frozenset({"a"})

    def test_deterministic(self):
        xml = '<a x="1"><b/><c y="2"><d/></c></a>'
        assert extract(xml) == extract(xml)


class TestParseErrors:
    def test_unclosed_element(self):
        with pytest.raises(ParseError) as exc:
            extract("<not>closed")
        assert "XML parsing error" in exc.value.message
        assert exc.value.line == 1

    def test_empty_input(self):
        with pytest.raises(ParseError):
            extract("")

    def test_plain_text(self):
        with pytest.raises(ParseError):
            extract("this is not xml")

    def test_mismatched_tags(self):
        with pytest.raises(ParseError):
            extract("<a><b></a></b>")

    def test_unencodable_string(self):
        with pytest.raises(ParseError) as exc:
            extract("<a>\ud800</a>")
        assert exc.value.line is None


class TestShapeNode:
    def test_signature(self):
        node = extract('<book id="1" type="x"><title/><chapter n="1"/></book>')
        assert node.signature() == "book[id,type]{title,chapter[n]}"

    def test_to_dict_omits_empty(self):
        d = extract('<book id="1"><title/></book>').to_dict()
        assert d == {"name": "book", "attributes": ["id"], "children": [{"name": "title"}]}

    def test_deep_tree_signature_and_dict(self):
        depth = 1500
        node = extract("<e>" * depth + "</e>" * depth)
        assert node.signature() == "e{" * (depth - 1) + "e" + "}" * (depth - 1)
        d, levels = node.to_dict(), 1
        while "children" in d:
            d = d["children"][0]
            levels += 1
        assert levels == depth


class TestExtractFile:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "doc.xml"
        path.write_text('<book id="1"><title>A</title></book>', encoding="utf-8")
        assert extract_file(str(path)).name == "book"

    def test_missing_file(self, tmp_path):
        with pytest.raises(DocumentReadError):
            extract_file(str(tmp_path / "missing.xml"))
