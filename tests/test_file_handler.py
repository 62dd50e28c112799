from unittest.mock import patch

from docflow.file_handler import validate_file


class TestValidateFile:
    def test_png(self, png_file):
        result = validate_file(str(png_file))
        assert result.valid is True
        info = result.file_info
        assert info.mime_kind == "png"
        assert info.name == "photo.png"
        assert info.byte_size == png_file.stat().st_size
        assert (info.width, info.height) == (40, 20)
        assert info.page_count is None
        assert info.total_pages == 1

    def test_pdf_page_count(self, pdf_file):
        with patch(
            "docflow.file_handler.pdfinfo_from_path", return_value={"Pages": 7}
        ) as pdfinfo:
            result = validate_file(str(pdf_file))
        pdfinfo.assert_called_once_with(str(pdf_file))
        assert result.valid is True
        assert result.file_info.mime_kind == "pdf"
        assert result.file_info.page_count == 7

    def test_corrupted_pdf(self, pdf_file):
        with patch(
            "docflow.file_handler.pdfinfo_from_path",
            side_effect=RuntimeError("Syntax Error"),
        ):
            result = validate_file(str(pdf_file))
        assert result.valid is False
        assert result.error.code == "FILE_CORRUPTED"

    def test_corrupted_image(self, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not a jpeg")
        result = validate_file(str(path))
        assert result.valid is False
        assert result.error.code == "FILE_CORRUPTED"

    def test_missing_file(self, tmp_path):
        result = validate_file(str(tmp_path / "missing.pdf"))
        assert result.valid is False
        assert result.error.code == "READ_ERROR"
        assert result.error.message == "File not found"

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        result = validate_file(str(path))
        assert result.valid is False
        assert result.error.code == "UNSUPPORTED_FORMAT"
        assert result.error.message == "Unsupported file format: .txt"

    def test_too_large(self, png_file, monkeypatch):
        monkeypatch.setenv("MAX_FILE_SIZE_MB", "0")
        result = validate_file(str(png_file))
        assert result.valid is False
        assert result.error.code == "FILE_TOO_LARGE"
