from oven.containers import (
    DefaultContainerRenderer,
    NativeContainerRenderer,
    build_container_chain,
    native_container_name,
    render_container,
)
from oven.renderers import PipelineBuilder


def render(markdown: str, **kwargs) -> str:
    return PipelineBuilder.default(**kwargs).build().render(markdown)


def test_default_container_renders_alert():
    html = render(":::tip\nHello **world**\n:::\n")
    assert html == (
        '<div class="alert alert-secondary" role="alert">\n'
        '<div class="d-flex align-items-center">\n'
        '<i class="bi-lightbulb-fill flex-shrink-0 me-2" aria-label="Tip:"></i>\n'
        "<h5>Tip:</h5>\n"
        "</div>\n"
        "<p>Hello <strong>world</strong></p>\n"
        "</div>\n"
    )


def test_default_vocabulary():
    for name, alert, title in [
        ("exercise", "alert-success", "Exercise:"),
        ("warning", "alert-warning", "Warning:"),
        ("note", "alert-primary", "Note:"),
        ("info", "alert-info", "Info:"),
    ]:
        html = render(f":::{name}\nBody\n:::\n")
        assert f"alert {alert}" in html
        assert f"<h5>{title}</h5>" in html


def test_answer_renders_reveal():
    html = render(":::answer\n42\n:::\n")
    assert html.startswith("<details>\n<summary>Reveal answer:</summary>\n")
    assert '<div class="px-4 pb-2">\n<p>42</p>\n</div>\n</details>' in html


def test_unknown_name_falls_through_to_native_component():
    html = render(":::custom\nBody\n:::\n")
    assert html == "<CustomContainer>\n<p>Body</p>\n</CustomContainer>\n"


def test_native_mode_only():
    html = render(":::tip\nBody\n:::\n", use_default_renderers=False)
    assert html == "<TipContainer>\n<p>Body</p>\n</TipContainer>\n"


def test_passthrough_when_both_modes_disabled():
    html = render(
        ":::tip\nBody\n:::\n", use_default_renderers=False, use_native_containers=False
    )
    assert html == "<p>Body</p>\n"


def test_fence_with_arguments_and_spacing():
    html = render("::: warning Careful now\nBody\n:::\n")
    assert "alert-warning" in html
    assert "Careful now" not in html


def test_nested_containers_with_longer_outer_fence():
    html = render("::::warning\nOuter\n:::tip\nInner\n:::\n::::\nAfter\n")
    assert html.index("alert-warning") < html.index("alert-secondary")
    assert html.index("<p>Inner</p>") < html.index("<p>After</p>")
    assert html.endswith("<p>After</p>\n")


def test_colon_lines_inside_code_do_not_close_container():
    html = render(":::note\n```\n:::\n```\nStill inside\n:::\nOutside\n")
    note_end = html.index("</div>\n<p>Outside</p>")
    assert html.index("<pre><code>:::\n</code></pre>") < note_end
    assert html.index("<p>Still inside</p>") < note_end


def test_unclosed_container_runs_to_end_of_input():
    html = render(":::info\nRuns to the end")
    assert "alert-info" in html
    assert html.endswith("<p>Runs to the end</p>\n</div>\n")


def test_container_interrupts_paragraph():
    html = render("Intro text\n:::tip\nBody\n:::\n")
    assert html.startswith("<p>Intro text</p>\n")
    assert "alert-secondary" in html


def test_shorter_closing_fence_does_not_close():
    html = render("::::tip\nBody\n:::\nMore\n::::\n")
    assert ":::\nMore</p>" in html
    assert html.rstrip().endswith("</div>")


def test_chain_order_and_names():
    chain = build_container_chain(True, True)
    assert isinstance(chain[0], DefaultContainerRenderer)
    assert isinstance(chain[1], NativeContainerRenderer)
    assert render_container(chain, "Answer", "", "x").startswith("<details>")
    assert native_container_name("tIP") == "TipContainer"
    assert render_container(build_container_chain(False, False), "tip", "", "body") == "body"
