"""TimeTrack backend: live timer synchronization"""
