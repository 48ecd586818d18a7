import importlib.util
import logging
import uuid
import zipfile
from pathlib import Path

import pytest

from oven.bake import (
    BakeError,
    BakeOptions,
    OutputPathError,
    ProjectNotFoundError,
    bake,
    load_config,
    output_path_for,
)
from oven.index import INDEX_FILE, INDEX_STUB_FILE
from oven.models import MarkdownPage

TEMPLATE = "<title>@Title</title><main>@Body</main><a href='@Route'>@Id</a><time>@Published</time>"

PLUGIN_SOURCE = '''
from oven.plugins import OvenPlugin


class MarkerContainer:
    def render(self, name, args, body):
        if name == "marker":
            return "<aside>" + body + "</aside>\\n"
        return None


class Enricher(OvenPlugin):
    name = "enricher"

    def before_bake(self, context, logger=None):
        context.pipeline.use("mark")
        context.pipeline.add_container_renderer(MarkerContainer())
        context.arguments.append("seen:%d" % len(context.markdown_pages))

    async def after_bake(self, context, logger=None):
        for generated in context.generated_pages:
            generated.page.metadata["reading"] = "5 min"


def oven_plugins():
    return [Enricher()]
'''


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_project(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    write(root / "Posts" / "template.html", TEMPLATE)
    write(
        root / "Posts" / "First Post.md",
        "---\ntitle: Hello\ndate: 2024-01-15\ntags: [a, b]\nauthor: Ada\n---\n# Intro\n\nBody text.\n",
    )
    write(root / "Posts" / "draft.md", "---\ntitle: WIP\ndraft: true\n---\nNot yet.\n")
    write(root / "Posts" / "empty.md", "---\ntitle: Nothing\n---\n\n")
    write(root / "Posts" / "fixed-id.md", "---\nid: custom\ntitle: Fixed\n---\nText\n")
    return root


def load_index(path: Path):
    spec = importlib.util.spec_from_file_location("baked_index", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.get_pages()


def install_plugin(root: Path, tmp_path: Path) -> Path:
    packages = tmp_path / "packages"
    archive = packages / "oven-plugin-enricher" / "1.0.0" / "py3test" / "oven_plugin_enricher.pyz"
    archive.parent.mkdir(parents=True)
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("oven_plugin_enricher.py", PLUGIN_SOURCE)
    write(
        root / "pyproject.toml",
        '[project]\nname = "site"\ndependencies = ["oven-plugin-enricher==1.0.0"]\n\n'
        '[tool.oven]\ntarget = "py3test"\n',
    )
    return packages


def test_bake_renders_pages_into_templates(tmp_path):
    root = create_project(tmp_path)
    result = bake(BakeOptions(project_path=root))

    out = root / ".generated" / "posts" / "FirstPost.html"
    assert out in result.written
    html = out.read_text(encoding="utf-8")
    expected_id = str(uuid.uuid5(uuid.NAMESPACE_URL, "/posts/first-post"))
    assert "<title>Hello</title>" in html
    assert '<h1 id="intro">Intro</h1>' in html
    assert "<p>Body text.</p>" in html
    assert "href='/posts/first-post'" in html
    assert f">{expected_id}</a>" in html
    assert "<time>Monday, January 15, 2024</time>" in html

    assert (root / ".generated" / "posts" / "FixedId.html").exists()
    assert not (root / ".generated" / "posts" / "Draft.html").exists()
    assert not (root / ".generated" / "posts" / "Empty.html").exists()
    assert sorted(p.name for p in result.skipped) == ["draft.md", "empty.md"]


def test_bake_writes_content_index(tmp_path):
    root = create_project(tmp_path)
    bake(BakeOptions(project_path=root))

    pages = load_index(root / ".generated" / INDEX_FILE)
    assert (root / ".generated" / INDEX_STUB_FILE).exists()
    by_slug = {p.slug: p for p in pages}
    assert set(by_slug) == {"/posts/first-post", "/posts/fixed-id"}
    assert by_slug["/posts/first-post"].tags == ["a", "b"]
    assert by_slug["/posts/first-post"].metadata == {"author": "Ada"}
    assert by_slug["/posts/fixed-id"].id == "custom"


def test_bake_is_idempotent(tmp_path):
    root = create_project(tmp_path)
    bake(BakeOptions(project_path=root))
    first = {p: p.read_text(encoding="utf-8") for p in (root / ".generated").rglob("*") if p.is_file()}
    bake(BakeOptions(project_path=root))
    second = {p: p.read_text(encoding="utf-8") for p in (root / ".generated").rglob("*") if p.is_file()}
    assert first == second


def test_include_drafts(tmp_path, caplog):
    root = create_project(tmp_path)
    with caplog.at_level(logging.WARNING, logger="oven.bake"):
        bake(BakeOptions(project_path=root))
    assert "Skipping draft page" in caplog.text
    assert "Skipping empty document" in caplog.text

    result = bake(BakeOptions(project_path=root, include_drafts=True))
    assert root / ".generated" / "posts" / "Draft.html" in result.written


def test_clean_removes_stale_output(tmp_path):
    root = create_project(tmp_path)
    stale = write(root / ".generated" / "stale.html", "old")
    bake(BakeOptions(project_path=root))
    assert stale.exists()
    bake(BakeOptions(project_path=root, clean=True))
    assert not stale.exists()


def test_unreadable_document_is_skipped(tmp_path, caplog):
    root = create_project(tmp_path)
    write(root / "Posts" / "binary.md", "---\ntitle: Bad\n---\nText\n")
    (root / "Posts" / "binary.md").write_bytes(b"\xff\xfe\x00bad")
    with caplog.at_level(logging.ERROR, logger="oven.bake"):
        result = bake(BakeOptions(project_path=root))
    assert "Cannot read" in caplog.text
    assert root / ".generated" / "posts" / "FirstPost.html" in result.written


def test_missing_project_raises(tmp_path):
    with pytest.raises(ProjectNotFoundError) as excinfo:
        bake(BakeOptions(project_path=tmp_path / "nope"))
    assert "does not exist" in excinfo.value.message


def test_output_path_mirrors_folders(tmp_path):
    document = MarkdownPage(
        tmp_path / "Docs" / "Guide" / "getting started.md", tmp_path / "t.html", "/docs/guide/x", ""
    )
    assert output_path_for(document, tmp_path, tmp_path / "out") == (
        tmp_path / "out" / "docs" / "guide" / "GettingStarted.html"
    )


def test_config_file_and_overrides(tmp_path, caplog):
    write(tmp_path / "oven.yaml", "output_dir: public\ninclude_drafts: true\nunknown: 1\n")
    assert load_config(tmp_path)["output_dir"] == "public"

    options = BakeOptions.from_config(tmp_path, include_drafts=None, clean=True, arguments=["--x"])
    assert options.output_dir == "public"
    assert options.include_drafts is True
    assert options.clean is True
    assert options.arguments == ["--x"]
    assert options.output_path == tmp_path / "public"

    write(tmp_path / "oven.yaml", "output_dir: [unclosed\n")
    with caplog.at_level(logging.WARNING, logger="oven.bake"):
        assert load_config(tmp_path)["output_dir"] == ".generated"
    assert "Ignoring invalid" in caplog.text


def test_plugins_extend_pipeline_and_metadata(tmp_path):
    root = create_project(tmp_path)
    write(root / "Posts" / "marked.md", "---\ntitle: Marked\n---\n==hot==\n\n::: marker\nInside\n:::\n")
    packages = install_plugin(root, tmp_path)

    result = bake(BakeOptions(project_path=root, packages_root=packages, arguments=["--flag"]))

    assert result.context.arguments == ["--flag", "seen:5"]
    html = (root / ".generated" / "posts" / "Marked.html").read_text(encoding="utf-8")
    assert "<mark>hot</mark>" in html
    assert "<aside><p>Inside</p>\n</aside>" in html

    pages = load_index(root / ".generated" / INDEX_FILE)
    assert all(p.metadata.get("reading") == "5 min" for p in pages)


FAILING_PLUGIN_SOURCE = '''
from oven.plugins import OvenPlugin


class Boom(OvenPlugin):
    name = "boom"

    def before_bake(self, context, logger=None):
        raise RuntimeError("before exploded")

    def after_bake(self, context, logger=None):
        context.arguments.append("boom:after")
        raise RuntimeError("after exploded")


def oven_plugins():
    return [Boom()]
'''

STAMPING_PLUGIN_SOURCE = '''
from oven.plugins import OvenPlugin


class Stamp(OvenPlugin):
    name = "stamp"

    def after_bake(self, context, logger=None):
        context.arguments.append("stamp:after")
        for generated in context.generated_pages:
            generated.page.metadata["stamped"] = "yes"


def oven_plugins():
    return [Stamp()]
'''

BOM = b"\xef\xbb\xbf"


def install_plugins(root: Path, tmp_path: Path, sources: dict[str, str]) -> Path:
    packages = tmp_path / "packages"
    for name, source in sources.items():
        module = name.replace("-", "_")
        archive = packages / name / "1.0.0" / "py3test" / f"{module}.pyz"
        archive.parent.mkdir(parents=True)
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr(f"{module}.py", source)
    dependencies = ", ".join(f'"{name}==1.0.0"' for name in sources)
    write(
        root / "pyproject.toml",
        f'[project]\nname = "site"\ndependencies = [{dependencies}]\n\n'
        '[tool.oven]\ntarget = "py3test"\n',
    )
    return packages


def test_byte_order_mark_does_not_hide_front_matter(tmp_path):
    root = create_project(tmp_path)
    secret = root / "Posts" / "secret.md"
    secret.write_bytes(BOM + b"---\ntitle: Secret\ndraft: true\n---\nHidden\n")

    result = bake(BakeOptions(project_path=root))
    assert secret in result.skipped
    assert not (root / ".generated" / "posts" / "Secret.html").exists()

    result = bake(BakeOptions(project_path=root, include_drafts=True))
    html = (root / ".generated" / "posts" / "Secret.html").read_text(encoding="utf-8")
    assert "<title>Secret</title>" in html


def test_byte_order_mark_is_stripped_from_templates(tmp_path):
    root = create_project(tmp_path)
    (root / "Posts" / "template.html").write_bytes(BOM + TEMPLATE.encode("utf-8"))
    bake(BakeOptions(project_path=root))
    html = (root / ".generated" / "posts" / "FirstPost.html").read_text(encoding="utf-8")
    assert html.startswith("<title>Hello</title>")


@pytest.mark.parametrize("output_dir", [".", "", ".."])
def test_output_root_may_not_contain_the_project(tmp_path, output_dir):
    root = create_project(tmp_path)
    sources = sorted(p for p in root.rglob("*") if p.is_file())

    with pytest.raises(OutputPathError) as excinfo:
        bake(BakeOptions(project_path=root, output_dir=output_dir, clean=True))
    assert isinstance(excinfo.value, BakeError)
    assert sorted(p for p in root.rglob("*") if p.is_file()) == sources

    with pytest.raises(OutputPathError):
        bake(BakeOptions(project_path=root, output_dir=output_dir))


def test_output_root_outside_the_project(tmp_path):
    root = create_project(tmp_path)
    outside = tmp_path / "public"
    result = bake(BakeOptions(project_path=root, output_dir=str(outside), clean=True))
    assert outside / "posts" / "FirstPost.html" in result.written
    assert (outside / INDEX_FILE).exists()
    assert (root / "Posts" / "First Post.md").exists()


def test_nested_output_root_is_not_scanned(tmp_path):
    root = create_project(tmp_path)
    write(root / "public" / "site" / "template.html", TEMPLATE)
    write(root / "public" / "site" / "stale.md", "Old output\n")
    result = bake(BakeOptions(project_path=root, output_dir="public/site"))
    assert root / "public" / "site" / "posts" / "FirstPost.html" in result.written
    assert all("public" not in p.parts for p in result.skipped)
    assert not any(g.page.slug.startswith("/public") for g in result.context.generated_pages)


def test_failing_plugin_does_not_stop_the_bake(tmp_path, caplog):
    root = create_project(tmp_path)
    packages = install_plugins(
        root,
        tmp_path,
        {"oven-plugin-boom": FAILING_PLUGIN_SOURCE, "oven-plugin-stamp": STAMPING_PLUGIN_SOURCE},
    )

    with caplog.at_level(logging.WARNING, logger="oven.plugins"):
        result = bake(BakeOptions(project_path=root, packages_root=packages))

    assert result.context.arguments == ["boom:after", "stamp:after"]
    assert root / ".generated" / "posts" / "FirstPost.html" in result.written
    assert "before exploded" in caplog.text
    assert "after exploded" in caplog.text
    pages = load_index(root / ".generated" / INDEX_FILE)
    assert pages and all(p.metadata["stamped"] == "yes" for p in pages)


def test_document_without_header_keeps_defaults(tmp_path):
    root = create_project(tmp_path)
    write(root / "Posts" / "Plain Note.md", "Just text, no header.\n")

    result = bake(BakeOptions(project_path=root))

    out = root / ".generated" / "posts" / "PlainNote.html"
    assert out in result.written
    slug = "/posts/plain-note"
    expected_id = str(uuid.uuid5(uuid.NAMESPACE_URL, slug))
    html = out.read_text(encoding="utf-8")
    assert "<title>Untitled</title>" in html
    assert "<p>Just text, no header.</p>" in html
    assert f"href='{slug}'" in html
    assert "<time></time>" in html

    page = {p.slug: p for p in load_index(root / ".generated" / INDEX_FILE)}[slug]
    assert page.id == expected_id
    assert page.title == "Untitled"
    assert page.description == ""
    assert page.date is None
    assert page.draft is False
    assert page.tags == []
    assert page.metadata == {}
