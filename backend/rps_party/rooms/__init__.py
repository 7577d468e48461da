from .registry import RoomRegistry, start_room_sweeper

__all__ = ['RoomRegistry', 'start_room_sweeper']
