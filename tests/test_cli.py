from datetime import date

import yaml
from click.testing import CliRunner

from postlight import __version__
from postlight.cli import _new_post_source, cli
from postlight.parser import parse_post


def scaffold(runner, target):
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code == 0, result.output
    return target


def mock_prompts(monkeypatch, responses):
    responses = iter(responses)

    class MockQuestion:
        def ask(self):
            return next(responses)

    monkeypatch.setattr("postlight.cli.questionary.text", lambda *args, **kwargs: MockQuestion())
    monkeypatch.setattr("postlight.cli.questionary.confirm", lambda *args, **kwargs: MockQuestion())


def test_cli_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = scaffold(runner, tmp_path / "mysite")
    assert (target / "postlight.yaml").exists()
    assert (target / "content" / "layout.html").exists()
    assert (target / "content" / "not_found.html").exists()
    assert (target / "content" / "posts" / "hello-world.md").exists()
    assert (target / "content" / "static").is_dir()

    # fails on non-empty directory
    result = runner.invoke(cli, ["new", str(target)])
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_scaffolded_site_loads(tmp_path):
    from postlight.repository import Site

    target = scaffold(CliRunner(), tmp_path / "mysite")
    site = Site.load(target / "content")
    assert [s.slug for s in site.posts.list()] == ["hello-world"]
    assert "Hello, world" in site.render_index()
    assert "does-not-exist" in site.render_not_found("does-not-exist")


def test_cli_serve_passes_overrides(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.delenv("POSTLIGHT_WS_PORT", raising=False)
    monkeypatch.setenv("POSTLIGHT_ENV", "production")

    called = {}

    class DummyServer:
        def __init__(self, config):
            called["config"] = config

        def open(self):
            called["opened"] = True

        def wait(self):
            called["waited"] = True

    monkeypatch.setattr("postlight.server.ContentServer", DummyServer)

    result = runner.invoke(
        cli, ["serve", "--dev", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    config = called["config"]
    assert config.port == 5050
    assert config.ws_port == 5051
    assert config.development is True
    assert config.content_dir == project / "content"
    assert called["opened"] and called["waited"]
    assert "http://localhost:5050" in result.output


def test_cli_serve_uses_environment(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    monkeypatch.delenv("POSTLIGHT_WS_PORT", raising=False)
    called = {}

    class DummyServer:
        def __init__(self, config):
            called["config"] = config

        def open(self):
            pass

        def wait(self):
            pass

    monkeypatch.setattr("postlight.server.ContentServer", DummyServer)
    result = runner.invoke(cli, ["serve"], env={"POSTLIGHT_ENV": "development", "PORT": "3000"})
    assert result.exit_code == 0, result.output
    assert called["config"].development is True
    assert called["config"].port == 3000
    assert called["config"].ws_port == 3001


def test_cli_serve_reports_startup_errors(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()
    result = runner.invoke(cli, ["serve"], env={"PORT": "8080"})
    assert result.exit_code == 1
    assert "Missing layout template" in result.output

    result = runner.invoke(cli, ["serve"], env={"PORT": "not-a-port"})
    assert result.exit_code == 1
    assert "port must be an integer" in result.output


def test_cli_serve_reports_undecodable_layout(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    (project / "content" / "layout.html").write_bytes(b"<title>\xff</title>")

    result = runner.invoke(cli, ["serve"], env={"PORT": "8080", "POSTLIGHT_ENV": "production"})
    assert result.exit_code == 1
    assert "Cannot read" in result.output
    assert "layout.html" in result.output


def test_cli_post_creates_file(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    mock_prompts(monkeypatch, ["My New Post", "my-new-post", True])

    result = runner.invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0

    today = date.today()
    expected = project / "content" / "posts" / f"{today.isoformat()}-my-new-post.md"
    assert expected.exists()
    post = parse_post(expected.read_bytes(), expected)
    assert post.title == "My New Post"
    assert post.slug == "my-new-post"
    assert post.date == today


def test_cli_post_without_date_prefix(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    mock_prompts(monkeypatch, ["Notes", "Some Notes!", False])

    result = runner.invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (project / "content" / "posts" / "some-notes.md").exists()


def test_cli_post_rejects_existing_slug(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    mock_prompts(monkeypatch, ["Hello again", "hello-world", True])

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_cli_post_aborts_on_cancel(monkeypatch, tmp_path):
    runner = CliRunner()
    project = scaffold(runner, tmp_path / "mysite")
    monkeypatch.chdir(project)
    mock_prompts(monkeypatch, [None])

    result = runner.invoke(cli, ["post"])
    assert result.exit_code != 0
    assert len(list((project / "content" / "posts").iterdir())) == 1


def test_cli_post_requires_posts_dir(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "No posts directory" in result.output


def test_new_post_source_is_valid_frontmatter():
    source = _new_post_source("Colon: title", "colon-title", date(2025, 3, 1))
    assert source.startswith("---\n")
    block = source.split("---\n")[1]
    assert yaml.safe_load(block) == {
        "title": "Colon: title",
        "date": date(2025, 3, 1),
        "slug": "colon-title",
    }


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_module_main_entrypoint():
    from postlight.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import postlight.cli as cli_mod

    called = {}
    monkeypatch.setattr(cli_mod, "cli", lambda: called.setdefault("ran", True))
    cli_mod.main()
    assert called["ran"]
