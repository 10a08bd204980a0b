"""Tests for packaging/modules.py module.

Tests module staging and metadata rewriting.
"""

from kernel_packer.packaging.modules import (
    PAYLOAD_MODULES_DIR,
    clear_payload_modules,
    copy_flat,
    modules_dir_name,
    rewrite_metadata,
    rewrite_modules_dep,
    rewrite_modules_load,
)


class TestRewriteModulesDep:
    """Tests for rewrite_modules_dep function."""

    def test_flattens_entries_and_dependencies(self):
        """Both the module and its dependencies should be rewritten."""
        text = (
            "kernel/drivers/net/wireless/ath/ath9k/ath9k_htc.ko: "
            "kernel/net/wireless/cfg80211.ko kernel/net/mac80211/mac80211.ko\n"
        )
        assert rewrite_modules_dep(text) == (
            "/vendor/lib/modules/ath9k_htc.ko: "
            "/vendor/lib/modules/cfg80211.ko /vendor/lib/modules/mac80211.ko\n"
        )

    def test_entry_without_dependencies(self):
        """Entries with an empty dependency list should keep the colon."""
        assert rewrite_modules_dep("kernel/fs/exfat/exfat.ko:\n") == (
            "/vendor/lib/modules/exfat.ko:\n"
        )

    def test_top_level_entry_unchanged(self):
        """A module directly under kernel/ has no subdirectory to strip."""
        assert rewrite_modules_dep("kernel/foo.ko:\n") == "kernel/foo.ko:\n"

    def test_custom_runtime_dir(self):
        """The runtime directory should be configurable."""
        result = rewrite_modules_dep("kernel/fs/foo.ko:\n", "/system/lib/modules/")
        assert result == "/system/lib/modules/foo.ko:\n"

    def test_multiple_lines(self):
        """Every line should be rewritten."""
        text = "kernel/a/x.ko:\nkernel/b/y.ko: kernel/a/x.ko\n"
        assert rewrite_modules_dep(text) == (
            "/vendor/lib/modules/x.ko:\n"
            "/vendor/lib/modules/y.ko: /vendor/lib/modules/x.ko\n"
        )


class TestRewriteModulesLoad:
    """Tests for rewrite_modules_load function."""

    def test_strips_directories(self):
        """Every line should keep only its file name."""
        text = "kernel/drivers/usb/serial/ftdi_sio.ko\nkernel/net/bluetooth/bt.ko\n"
        assert rewrite_modules_load(text) == "ftdi_sio.ko\nbt.ko\n"

    def test_bare_names_unchanged(self):
        """Lines without a directory should be left alone."""
        assert rewrite_modules_load("wlan.ko\n") == "wlan.ko\n"


class TestRewriteMetadata:
    """Tests for rewrite_metadata function."""

    def test_rewrites_in_place(self, tmp_path):
        """Both files should be rewritten."""
        (tmp_path / "modules.dep").write_text("kernel/fs/foo.ko:\n")
        (tmp_path / "modules.load").write_text("kernel/fs/foo.ko\n")

        failed = rewrite_metadata(tmp_path, "/vendor/lib/modules")

        assert failed == []
        assert (tmp_path / "modules.dep").read_text() == "/vendor/lib/modules/foo.ko:\n"
        assert (tmp_path / "modules.load").read_text() == "foo.ko\n"

    def test_missing_file_reported(self, tmp_path):
        """A missing file should be reported, not raised."""
        (tmp_path / "modules.dep").write_text("kernel/fs/foo.ko:\n")

        failed = rewrite_metadata(tmp_path, "/vendor/lib/modules")

        assert failed == ["modules.load"]
        assert (tmp_path / "modules.dep").read_text() == "/vendor/lib/modules/foo.ko:\n"


class TestStaging:
    """Tests for module directory helpers."""

    def test_modules_dir_name(self):
        """Version and suffix should be joined directly."""
        assert modules_dir_name("5.4.289", "-NetHunter") == "5.4.289-NetHunter"

    def test_copy_flat(self, tmp_path):
        """Files should land flat; same-name files should be overwritten."""
        first = tmp_path / "src" / "a" / "wlan.ko"
        second = tmp_path / "src" / "b" / "wlan.ko"
        third = tmp_path / "src" / "b" / "bt.ko"
        for path, data in ((first, b"1"), (second, b"2"), (third, b"3")):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        dest = tmp_path / "dest"

        count = copy_flat([first, second, third], dest)

        assert count == 2
        assert (dest / "wlan.ko").read_bytes() == b"2"
        assert (dest / "bt.ko").read_bytes() == b"3"

    def test_clear_payload_modules(self, tmp_path):
        """Everything below the module directory should be removed."""
        modules_root = tmp_path / PAYLOAD_MODULES_DIR
        (modules_root / "5.4.1-old").mkdir(parents=True)
        (modules_root / "5.4.1-old" / "x.ko").write_bytes(b"x")
        (modules_root / "placeholder").write_text("")

        clear_payload_modules(tmp_path)

        assert modules_root.is_dir()
        assert list(modules_root.iterdir()) == []

    def test_clear_payload_modules_missing(self, tmp_path):
        """A repository without a module directory should be fine."""
        clear_payload_modules(tmp_path)
        assert not (tmp_path / PAYLOAD_MODULES_DIR).exists()
