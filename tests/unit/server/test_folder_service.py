import pytest
from sqlmodel import select

from tgpic.server.component import folder_path
from tgpic.server.exception.exception import NotFoundException, UserException
from tgpic.server.model.image.image import Image
from tgpic.server.service import folder_service


def _folders(db):
    db.expire_all()
    return {image.id: image.folder for image in db.exec(select(Image)).all()}


@pytest.mark.unit
class TestFolderPath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, "/"),
            ("", "/"),
            ("/", "/"),
            ("a", "/a/"),
            ("/a/b", "/a/b/"),
            ("a//b/", "/a/b/"),
            ("/旅行/2026_夏/", "/旅行/2026_夏/"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert folder_path.normalize(raw) == expected

    @pytest.mark.parametrize("raw", ["/a b/", "/../etc/", "/a-b/", "/x/y.z/", "/a\n/b/", "/a/b\n/c/"])
    def test_rejects_bad_segments(self, raw):
        with pytest.raises(UserException):
            folder_path.normalize(raw)

    def test_expand_includes_ancestors_and_root(self):
        assert folder_path.expand(["/a/b/c/", "/x/"]) == ["/", "/a/", "/a/b/", "/a/b/c/", "/x/"]


@pytest.mark.unit
class TestFolderService:
    def test_list_folders(self, db, make_image):
        make_image(folder="/a/b/")
        make_image(folder="/c/")
        assert folder_service.list_folders(s=db) == ["/", "/a/", "/a/b/", "/c/"]

    def test_list_on_empty_catalog_is_root(self, db):
        assert folder_service.list_folders(s=db) == ["/"]

    def test_rename_moves_exactly_the_subtree(self, db, make_image):
        inside = make_image(folder="/a/")
        nested = make_image(folder="/a/b/")
        sibling = make_image(folder="/ab/")
        other = make_image(folder="/c/a/")

        updated = folder_service.rename_folder("/a", "/z/", s=db)

        assert updated == 2
        assert _folders(db) == {
            inside.id: "/z/",
            nested.id: "/z/b/",
            sibling.id: "/ab/",
            other.id: "/c/a/",
        }

    def test_rename_into_own_subtree_is_rejected(self, db, make_image):
        image = make_image(folder="/a/")
        with pytest.raises(UserException):
            folder_service.rename_folder("/a/", "/a/b/", s=db)
        assert _folders(db) == {image.id: "/a/"}

    def test_root_cannot_be_renamed_or_deleted(self, db, make_image):
        make_image(folder="/")
        with pytest.raises(UserException):
            folder_service.rename_folder("/", "/x/", s=db)
        with pytest.raises(UserException):
            folder_service.delete_folder("/", s=db)

    def test_invalid_path_is_rejected_before_any_change(self, db, make_image):
        image = make_image(folder="/a/")
        with pytest.raises(UserException):
            folder_service.rename_folder("/a/", "/bad name/", s=db)
        assert _folders(db) == {image.id: "/a/"}

    def test_delete_removes_folder_and_descendants(self, db, make_image):
        make_image(folder="/a/")
        make_image(folder="/a/b/")
        keep = make_image(folder="/ab/")

        assert folder_service.delete_folder("/a/", s=db) == 2
        assert list(_folders(db)) == [keep.id]

    def test_move_rewrites_only_given_ids(self, db, make_image):
        first = make_image(folder="/a/")
        second = make_image(folder="/a/")

        assert folder_service.move_images([first.id], "new/place", s=db) == 1
        assert _folders(db) == {first.id: "/new/place/", second.id: "/a/"}

    def test_move_with_unknown_id_rejects_whole_batch(self, db, make_image):
        image = make_image(folder="/a/")
        with pytest.raises(NotFoundException):
            folder_service.move_images([image.id, 999], "/b/", s=db)
        assert _folders(db) == {image.id: "/a/"}

    def test_copy_creates_new_short_codes(self, db, make_image):
        source = make_image(folder="/a/", tags="cat,dog", digest="d" * 32)

        copies = folder_service.copy_images([source.id, source.id], "/b/", s=db)

        assert len(copies) == 1
        clone = copies[0]
        assert clone.id != source.id
        assert clone.short_code != source.short_code
        assert clone.folder == "/b/"
        assert (clone.file_id, clone.tags, clone.size, clone.digest) == (
            source.file_id,
            source.tags,
            source.size,
            source.digest,
        )
        assert _folders(db)[source.id] == "/a/"
