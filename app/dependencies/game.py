from typing import Annotated

from fastapi import Depends

from app.services.game.service import GameService, get_game_service

GameServiceDep = Annotated[GameService, Depends(get_game_service)]
