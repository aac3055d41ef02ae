from datetime import date, datetime
from pathlib import Path

import pytest

from quire.content import (
    ContentLoader,
    Document,
    DocumentBuilder,
    FileContentLoader,
    OutputPathDeriver,
    ensure_unique_output_paths,
)
from quire.errors import ParseError, PathCollisionError
from quire.extractors import (
    CompositeMetadataExtractor,
    DateExtractor,
    SlugExtractor,
    TagExtractor,
    TitleExtractor,
    extract_frontmatter,
)
from quire.protocols import MetadataExtractor


def write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


# --- Front-matter ---


def test_extract_frontmatter_splits_header_and_body():
    text = "---\ntitle: Hello\ntags: [a, b]\n---\n# Body\n\ntext\n"
    metadata, body = extract_frontmatter(text, "post.md")
    assert metadata == {"title": "Hello", "tags": ["a", "b"]}
    assert body == "# Body\n\ntext\n"


def test_extract_frontmatter_without_header():
    metadata, body = extract_frontmatter("Just text\n---\nmore", "plain.md")
    assert metadata == {}
    assert body == "Just text\n---\nmore"


def test_extract_frontmatter_empty_header_and_bom():
    metadata, body = extract_frontmatter("\ufeff---\n---\nbody", "empty.md")
    assert metadata == {}
    assert body == "body"


def test_extract_frontmatter_accepts_dots_terminator():
    metadata, body = extract_frontmatter("---\ntitle: T\n...\nbody", "dots.md")
    assert metadata == {"title": "T"}
    assert body == "body"


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("---\ntitle: Hello\nbody without end\n", "unterminated"),
        ("---\ntitle: [unclosed\n---\nbody", "invalid front-matter YAML"),
        ("---\n- a\n- b\n---\nbody", "must be a mapping"),
        ("---\n1: one\n---\nbody", "keys must be strings"),
        ("---\ndate: 2024-13-45\n---\nbody", "invalid front-matter YAML"),
    ],
)
def test_extract_frontmatter_malformed(text, fragment):
    with pytest.raises(ParseError) as excinfo:
        extract_frontmatter(text, "bad.md")
    assert fragment in excinfo.value.message
    assert excinfo.value.source_path == Path("bad.md")
    assert not excinfo.value.fatal


def test_metadata_round_trip_keeps_parsed_values(tmp_path):
    write(
        tmp_path,
        "posts/2024-02-01-types.md",
        "---\n"
        "title: Types\n"
        "date: 2024-02-03\n"
        "count: 3\n"
        "ratio: 0.5\n"
        "flag: false\n"
        "version: '1.10'\n"
        "nested: {a: [1, 2]}\n"
        "empty: null\n"
        "---\nbody\n",
    )
    doc = DocumentBuilder(tmp_path).build(tmp_path / "posts/2024-02-01-types.md")
    assert dict(doc.metadata) == {
        "title": "Types",
        "date": date(2024, 2, 3),
        "count": 3,
        "ratio": 0.5,
        "flag": False,
        "version": "1.10",
        "nested": {"a": [1, 2]},
        "empty": None,
    }
    # front-matter date wins over the filename prefix
    assert doc.date == datetime(2024, 2, 3)
    with pytest.raises(TypeError):
        doc.metadata["title"] = "changed"


# --- Extractors ---


def test_title_extractor():
    assert TitleExtractor().extract({"title": 42}, Path("x.md")) == {"title": "42"}
    assert TitleExtractor().extract({}, Path("2024-01-01-my-post.md")) == {"title": "My Post"}


def test_date_extractor():
    extractor = DateExtractor()
    assert extractor.extract({}, Path("2024-01-15-x.md"))["date"] == datetime(2024, 1, 15)
    assert extractor.extract({}, Path("undated.md"))["date"] is None
    assert extractor.extract({"date": "2023-05-06"}, Path("x.md"))["date"] == datetime(2023, 5, 6)
    with pytest.raises(ParseError):
        extractor.extract({"date": "soon"}, Path("x.md"))


def test_tag_extractor():
    extractor = TagExtractor()
    assert extractor.extract({}, Path("x.md")) == {"tags": ()}
    assert extractor.extract({"tags": "simd"}, Path("x.md")) == {"tags": ("simd",)}
    assert extractor.extract({"tags": ["c++", " simd ", "c++"]}, Path("x.md")) == {
        "tags": ("c++", "simd")
    }
    with pytest.raises(ParseError):
        extractor.extract({"tags": {"a": 1}}, Path("x.md"))
    with pytest.raises(ParseError):
        extractor.extract({"tags": ["ok", 3]}, Path("x.md"))


def test_slug_extractor():
    assert SlugExtractor().extract({}, Path("2024-01-15-Hello-World.md")) == {"slug": "hello-world"}
    assert SlugExtractor().extract({"slug": "Custom Slug"}, Path("x.md")) == {"slug": "custom-slug"}
    assert SlugExtractor().extract({"slug": "1-2-3-go"}, Path("2024-01-15-x.md")) == {
        "slug": "1-2-3-go"
    }


def test_composite_extractor_allows_extra_extractors():
    class WordCount:
        def extract(self, metadata, path):
            return {"words": 3}

    assert isinstance(WordCount(), MetadataExtractor)
    assert isinstance(DateExtractor(), MetadataExtractor)
    composite = CompositeMetadataExtractor([TitleExtractor()])
    composite.add_extractor(WordCount())
    assert composite.extract({"title": "T"}, Path("x.md")) == {"title": "T", "words": 3}


# --- Output paths ---


def test_output_path_rules():
    deriver = OutputPathDeriver()
    from pathlib import PurePosixPath as P

    assert deriver.derive(P("index.md"), {}, "index", None) == "index.html"
    assert deriver.derive(P("posts/index.md"), {}, "index", None) == "posts/index.html"
    assert deriver.derive(P("about.md"), {}, "about", None) == "about/index.html"
    assert (
        deriver.derive(P("posts/2024-01-15-x.md"), {}, "x", datetime(2024, 1, 15))
        == "posts/2024/01/15/x/index.html"
    )
    assert deriver.derive(P("a.md"), {"permalink": "/me/"}, "a", None) == "me/index.html"
    with pytest.raises(ParseError):
        deriver.derive(P("a.md"), {"permalink": "../x"}, "a", None)


def test_ensure_unique_output_paths_reports_sorted_sources():
    ensure_unique_output_paths([("a.md", "a/index.html"), ("b.md", "b/index.html")])
    with pytest.raises(PathCollisionError) as excinfo:
        ensure_unique_output_paths(
            [
                ("z.md", "x/index.html"),
                ("b.md", "b/index.html"),
                ("a.md", "x/index.html"),
            ]
        )
    assert excinfo.value.output_path == "x/index.html"
    assert excinfo.value.sources == ["a.md", "z.md"]
    assert excinfo.value.fatal


# --- Loading ---


def test_file_loader_skips_internal_and_non_markdown(tmp_path):
    write(tmp_path, "index.md", "home")
    write(tmp_path, "posts/b.md", "b")
    write(tmp_path, "posts/a.markdown", "a")
    write(tmp_path, "_partials/header.md", "internal")
    write(tmp_path, "posts/_wip.md", "internal")
    write(tmp_path, ".git/notes.md", "hidden")
    write(tmp_path, "notes.txt", "ignored")
    files = FileContentLoader(tmp_path).iter_files()
    rel = [p.relative_to(tmp_path).as_posix() for p in files]
    assert rel == ["index.md", "posts/a.markdown", "posts/b.md"]


def test_loader_builds_documents(tmp_path):
    write(
        tmp_path,
        "posts/2024-01-15-hello.md",
        "---\ntitle: Hello\ntags: [intro, simd]\n---\n# Heading\n",
    )
    write(tmp_path, "about.md", "About me")
    result = ContentLoader(tmp_path, workers=4).load()

    assert [d.source_path for d in result.documents] == ["about.md", "posts/2024-01-15-hello.md"]
    about, post = result.documents
    assert about.title == "About"
    assert about.tags == ()
    assert about.date is None
    assert about.output_path == "about/index.html"
    assert about.group == ""
    assert post.output_path == "posts/2024/01/15/hello/index.html"
    assert post.url == "/posts/2024/01/15/hello/"
    assert post.tags == ("intro", "simd")
    assert post.metadata["tags"] == ["intro", "simd"]
    assert post.group == "posts"
    assert post.body == "# Heading\n"
    assert result.warnings == []


def test_loader_skips_malformed_documents_with_warning(tmp_path, caplog):
    write(tmp_path, "good.md", "---\ntitle: Good\n---\nok")
    write(tmp_path, "bad.md", "---\ntitle: [oops\n---\nbody")
    write(tmp_path, "open.md", "---\ntitle: never closed\n")
    with caplog.at_level("WARNING", logger="quire.content"):
        result = ContentLoader(tmp_path).load()
    assert [d.source_path for d in result.documents] == ["good.md"]
    assert sorted(str(w.source_path) for w in result.warnings) == ["bad.md", "open.md"]
    assert "Skipping" in caplog.text


def test_loader_skips_drafts_unless_requested(tmp_path):
    write(tmp_path, "draft.md", "---\ndraft: true\n---\nwip")
    write(tmp_path, "done.md", "done")
    result = ContentLoader(tmp_path).load()
    assert [d.source_path for d in result.documents] == ["done.md"]
    assert result.skipped_drafts == ["draft.md"]

    with_drafts = ContentLoader(tmp_path, include_drafts=True).load()
    assert [d.source_path for d in with_drafts.documents] == ["done.md", "draft.md"]


def test_loader_detects_collisions(tmp_path):
    write(tmp_path, "posts/2024-01-15-same.md", "one")
    write(tmp_path, "posts/other.md", "---\ndate: 2024-01-15\nslug: same\n---\ntwo")
    with pytest.raises(PathCollisionError) as excinfo:
        ContentLoader(tmp_path, workers=2).load()
    assert excinfo.value.output_path == "posts/2024/01/15/same/index.html"
    assert excinfo.value.sources == ["posts/2024-01-15-same.md", "posts/other.md"]


def test_same_slug_on_different_dates_does_not_collide(tmp_path):
    write(tmp_path, "posts/2024-01-15-same.md", "one")
    write(tmp_path, "posts/2024-01-16-same.md", "two")
    result = ContentLoader(tmp_path).load()
    assert len({d.output_path for d in result.documents}) == 2


def test_unreadable_file_is_a_parse_error(tmp_path):
    (tmp_path / "binary.md").write_bytes(b"\xff\xfe\x00bad")
    write(tmp_path, "ok.md", "fine")
    result = ContentLoader(tmp_path).load()
    assert [d.source_path for d in result.documents] == ["ok.md"]
    assert "could not read" in result.warnings[0].message


def test_document_is_immutable(tmp_path):
    write(tmp_path, "a.md", "a")
    doc = ContentLoader(tmp_path).load().documents[0]
    assert isinstance(doc, Document)
    with pytest.raises(AttributeError):
        doc.title = "other"
