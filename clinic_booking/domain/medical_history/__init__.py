"""Medical history domain - records attached to completed appointments"""
