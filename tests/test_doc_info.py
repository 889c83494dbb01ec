from hashed_index.doc_info import DocInfo


def test_write_then_read(tmp_path):
    path = str(tmp_path / "docInfo")
    doc_info = DocInfo()
    doc_info.update(0, "davisWiki/a.f", 12)
    doc_info.update(1, "davisWiki/odd;name.f", 3)
    doc_info.write(path)

    loaded = DocInfo.read(path)
    assert loaded.doc_names == {0: "davisWiki/a.f", 1: "davisWiki/odd;name.f"}
    assert loaded.doc_lengths == {0: 12, 1: 3}


def test_append(tmp_path):
    path = str(tmp_path / "docInfo")
    DocInfo({0: "a"}, {0: 1}).write(path)
    DocInfo({1: "b"}, {1: 2}).write(path, append=True)

    assert DocInfo.read(path).doc_lengths == {0: 1, 1: 2}


def test_missing_file_gives_empty_doc_info(tmp_path):
    doc_info = DocInfo.read(str(tmp_path / "missing"))

    assert len(doc_info) == 0
    assert doc_info.doc_lengths == {}


def test_malformed_lines_are_skipped(tmp_path):
    path = tmp_path / "docInfo"
    path.write_text("0;a.f;4\nnot a record\nx;b.f;2\n2;c.f;many\n\n3;d.f;7\n")

    doc_info = DocInfo.read(str(path))
    assert doc_info.doc_names == {0: "a.f", 3: "d.f"}
    assert doc_info.doc_lengths == {0: 4, 3: 7}
