import pytest

from edalab.chapters import CHAPTERS, get_chapter, list_chapters


def test_list_chapters():
    numbers = [number for number, _, _ in list_chapters()]
    assert numbers == [1, 3, 9, 10, 21]
    with pytest.raises(ValueError, match="Unknown chapter: 2"):
        get_chapter(2)


@pytest.mark.parametrize("number", sorted(CHAPTERS))
def test_chapter_runs(number, tmp_path):
    run = get_chapter(number).main(output_dir=tmp_path, echo=False)
    assert run.sections
    assert run.output_dir.parent == tmp_path
    for path in run.figures:
        assert path.exists()
        assert path.parent == run.output_dir


def test_plot_chapters_save_figures(tmp_path):
    run = get_chapter(1).main(output_dir=tmp_path, echo=False)
    names = [path.name for path in run.figures]
    assert names[0].startswith("01-")
    assert names[-1].endswith("mpg-plot.png")


def test_database_chapter_prints_queries(tmp_path, capsys):
    get_chapter(21).main(output_dir=tmp_path, echo=True)
    out = capsys.readouterr().out
    assert 'FROM "diamonds"' in out
    assert (tmp_path / "ch21" / "duckdb").exists()
