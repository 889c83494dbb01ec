import random

from hashed_index.structures import Posting, PostingsList


def build(pairs):
    postings_list = PostingsList()
    for doc_id, offset in pairs:
        postings_list.add(doc_id, offset)
    return postings_list


def as_mapping(postings_list):
    return {p.doc_id: list(p.offsets) for p in postings_list}


def test_add_keeps_doc_ids_and_offsets_sorted_and_unique():
    random.seed(7)
    pairs = [(random.randint(0, 20), random.randint(0, 50)) for _ in range(500)]
    postings_list = build(pairs)

    doc_ids = postings_list.doc_ids()
    assert doc_ids == sorted(set(doc_ids))
    assert set(doc_ids) == {doc_id for doc_id, _ in pairs}

    for posting in postings_list:
        assert posting.offsets == sorted(set(posting.offsets))
        expected = {offset for doc_id, offset in pairs if doc_id == posting.doc_id}
        assert set(posting.offsets) == expected


def test_get_entry_and_set_score():
    postings_list = build([(3, 1), (1, 4)])

    assert postings_list.get_entry(3).offsets == [1]
    assert postings_list.get_entry(2) is None
    assert 1 in postings_list
    assert 2 not in postings_list

    postings_list.set_score(1, 0.5)
    postings_list.set_score(99, 1.0)
    assert postings_list.get_entry(1).score == 0.5
    assert 99 not in postings_list
    assert len(postings_list) == 2


def test_serialize_round_trip():
    postings_list = build([(5, 3), (0, 1), (5, 1), (12, 0), (0, 7)])
    text = postings_list.serialize()

    assert text == "~0,1,7,~5,1,3,~12,0,"
    assert PostingsList.deserialize(text) == postings_list


def test_deserialize_accepts_whole_record():
    postings_list = PostingsList.deserialize("cat;~0,1,~2,3,4,")

    assert as_mapping(postings_list) == {0: [1], 2: [3, 4]}


def test_deserialize_empty_record():
    assert len(PostingsList.deserialize("")) == 0
    assert len(PostingsList.deserialize("cat;")) == 0


def test_deserialize_skips_malformed_postings():
    postings_list = PostingsList.deserialize("~x,1,~2,3,~4,y,")

    assert postings_list.doc_ids() == [2]
    assert postings_list.get_entry(2).offsets == [3]


def test_merge_is_commutative():
    a_pairs = [(0, 1), (2, 5), (4, 0), (2, 1)]
    b_pairs = [(2, 3), (3, 3), (0, 1), (7, 2)]

    ab = build(a_pairs).merge(build(b_pairs))
    ba = build(b_pairs).merge(build(a_pairs))

    assert as_mapping(ab) == as_mapping(ba)
    assert as_mapping(ab) == {0: [1], 2: [1, 3, 5], 3: [3], 4: [0], 7: [2]}


def test_merge_with_itself_is_a_no_op():
    pairs = [(0, 1), (2, 5), (2, 6)]
    postings_list = build(pairs)

    assert postings_list.merge(build(pairs)) == build(pairs)
    assert postings_list.merge(None) == build(pairs)


def test_merge_keeps_postings_without_offsets():
    other = PostingsList()
    other.add_posting(9)

    merged = build([(1, 0)]).merge(other)

    assert merged.doc_ids() == [1, 9]
    assert merged.get_entry(9).offsets == []


def test_ranked_orders_by_descending_score():
    postings_list = PostingsList([Posting(0, 0.1), Posting(1, 0.9), Posting(2, 0.5)])

    assert [p.doc_id for p in postings_list.ranked()] == [1, 2, 0]
    assert postings_list.doc_ids() == [0, 1, 2]
