"""
Example: show whether the "CamA" source in "Scene1" is visible, live.

  OBS_WS_PASSWORD=secret WIDGET_SCENE=Scene1 WIDGET_SOURCE=CamA \
    python -m skills.obs_scene_item_visibility.examples.run_visibility_widget

  LIST_SCENE_ITEMS=1 python -m skills.obs_scene_item_visibility.examples.run_visibility_widget
"""

from skills.obs_scene_item_visibility.templates.runner import main

if __name__ == "__main__":
    main()
