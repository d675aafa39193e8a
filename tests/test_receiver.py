import io
import json

from touchpointer.tools.receiver import record_line, split_lines


def test_split_lines():
    assert split_lines("CLICK:LEFT\nMOVE:2,3\n") == ["CLICK:LEFT", "MOVE:2,3"]
    assert split_lines(b"CLICK:RIGHT\n") == ["CLICK:RIGHT"]
    assert split_lines("\n\n") == []


def test_record_line_writes_jsonl(capsys):
    out = io.StringIO()
    record_line("MOVE:-1,4", out, echo=True)
    record_line("MOVE:1.5,2", out, echo=False)

    rows = [json.loads(line) for line in out.getvalue().splitlines()]
    assert [(r["line"], r["ok"]) for r in rows] == [("MOVE:-1,4", True), ("MOVE:1.5,2", False)]
    assert all(isinstance(r["ts"], int) for r in rows)
    assert capsys.readouterr().out == "[receiver] MOVE:-1,4\n"
