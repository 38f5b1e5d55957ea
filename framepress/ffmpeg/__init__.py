"""FFmpeg 인자 생성, 프로세스 실행, 출력 분석."""
