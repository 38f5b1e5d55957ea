"""framepress: FFmpeg 변환 인자 컴파일러 및 ML 업스케일 파이프라인."""

__version__ = "0.1.0"
