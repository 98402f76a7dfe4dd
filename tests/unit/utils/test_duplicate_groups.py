import pytest

from tgpic.utils.dedup import DuplicateGroup, group_duplicates, ids_to_delete


@pytest.mark.unit
class TestGroupDuplicates:
    def test_keeps_first_member_of_each_group(self):
        groups = group_duplicates([(1, "aa"), (2, "bb"), (3, "aa"), (4, "aa"), (5, "bb"), (6, "cc")])

        assert [g.as_dict() for g in groups] == [
            {"digest": "aa", "keep": 1, "remove": [3, 4]},
            {"digest": "bb", "keep": 2, "remove": [5]},
        ]
        assert ids_to_delete(groups) == [3, 4, 5]

    def test_entries_without_digest_never_group(self):
        groups = group_duplicates([(1, None), (2, None), (3, ""), (4, "dd")])
        assert groups == []

    def test_singletons_produce_nothing(self):
        assert group_duplicates([(1, "a"), (2, "b")]) == []
        assert ids_to_delete([]) == []

    def test_as_dict_copies_remove_list(self):
        group = DuplicateGroup(digest="x", keep=1, remove=[2])
        payload = group.as_dict()
        payload["remove"].append(3)
        assert group.remove == [2]
