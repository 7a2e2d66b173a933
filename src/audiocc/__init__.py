# audiocc: Audio library organizer (probe, transcode to MP3, place)
# Package: audiocc

__version__ = "1.0.0-dev"
__author__ = "audiocc Contributors"
__description__ = "Organize an audio library into consistently tagged MP3 folders"

# Module structure:
#   - audiocc.library   : Path utilities, bundling, placement engine
#   - audiocc.probe     : ffprobe adapter (TrackProbe)
#   - audiocc.transcode : ffmpeg adapter (cover art, MP3 output)
#   - audiocc.pipeline  : Walk -> bundle -> probe -> transcode -> place
#   - audiocc.config    : Configuration management
#   - audiocc.cli       : Command-line interface
