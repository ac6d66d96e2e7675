from edalab.__main__ import build_parser, main


def test_parser_requires_a_command():
    parser = build_parser()
    args = parser.parse_args(["run", "3", "--output-dir", "out"])
    assert args.chapter == 3
    assert args.output_dir == "out"


def test_chapters_command(capsys):
    assert main(["chapters"]) == 0
    out = capsys.readouterr().out
    assert "edalab.chapters.ch21_databases" in out


def test_glimpse_command(capsys, raw_frames):
    assert main(["--log-level", "WARNING", "glimpse", "mpg", "--width", "60"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0] == f"Rows: {len(raw_frames['mpg'])}"


def test_sql_command(capsys):
    query = "SELECT cut, COUNT(*) AS n FROM diamonds GROUP BY cut ORDER BY cut"
    assert main(["--log-level", "WARNING", "sql", "diamonds", query]) == 0
    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0].split() == ["cut", "n"]
    assert lines[1].split()[1] == "Fair"


def test_errors(capsys):
    assert main(["glimpse", "iris"]) == 2
    assert "Unknown dataset: iris" in capsys.readouterr().err
    assert main(["run", "2"]) == 1
    assert main(["sql", "mpg", "SELECT * FROM nope"]) == 1
