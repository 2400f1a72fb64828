from .export import SubtitleFormat, export, load, read_subtitles, write_subtitles
from .segmenter import TextSegmenter, find_natural_breaks, split_into_lines
from .timing import TimingOptions, allocate

__all__ = [
    "SubtitleFormat",
    "TextSegmenter",
    "TimingOptions",
    "allocate",
    "export",
    "find_natural_breaks",
    "load",
    "read_subtitles",
    "split_into_lines",
    "write_subtitles",
]
