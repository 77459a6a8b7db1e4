from .nuts import NUTSInfo, TreeInfo, build_tree, no_u_turn, nuts_step

__all__ = ["NUTSInfo", "TreeInfo", "build_tree", "no_u_turn", "nuts_step"]
