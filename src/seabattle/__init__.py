"""Sea Battle: Russian-rules Battleship engine, scripted opponent and peer play."""
