BUILD_PROMPT = """\
You are an expert system for a special mobile app framework.
Your task is to generate a complete set of configuration and resource files for an application based on the user's request.
The output MUST be a single JSON object where keys are the full file paths and values are the string content for each file, matching the schema provided.

The user has provided an app name: "{app_name}". This name should be used where appropriate.
The user has provided an AdMob App ID: "{admob_app_id}". Include this in the 'app.easy' file.

Please generate the content for the following files:

1. 'firebase/google-services.json': A placeholder google-services.json file. Use placeholder values for project IDs and keys, but the structure must be correct. Include a "project_info" with "project_id" like "{project_slug}-project" and a client object.
2. 'res/drawable/app_icon.xml': An Android Vector Drawable XML file for the app's icon. The user has uploaded a reference image. Create a simplified, abstract, and iconic vector drawable that captures the essence of this image.
3. 'res/drawable/item1_icon.xml': An Android Vector Drawable XML for an icon related to the primary feature of the app.
4. 'res/drawable/item2_icon.xml': An Android Vector Drawable XML for another icon related to a secondary feature or action in the app.
5. 'res/drawable/settings.xml': An Android Vector Drawable XML, specifically a 'shape' drawable that can be used as a background. Create a simple rectangle shape with rounded corners and a solid color.
6. 'tree/app.easy': This is a custom JSON configuration file that defines the UI and logic. The content for this file MUST be a valid JSON string.
    - The root of the JSON must be an object.
    - It must have an "appName": "{app_name}".
    - It must have an "appVersion": "1.0.0".
    - It must have a "startScreen" property, indicating the name of the first screen to show.
    - It should have a "toolbar" object with a "title" and an optional "menu" array for toolbar actions.
    - It must have an "admobAppId" property with the exact value provided by the user.
    - It must have a "screens" property, which is an array of screen objects. Generate at least two logical screens based on the user's request (e.g., a main list screen and a detail/add screen).
    - Each screen object must have "name", "title", and "widgets" properties.
    - The "widgets" property is an array of widget objects.
    - The root object must have an "actions" property, an array of action objects. Include "navigate" actions to move between the screens you create.
    - Example structure:
      {{
        "appName": "{app_name}",
        "appVersion": "1.0.0",
        "startScreen": "main",
        "admobAppId": "{admob_app_id}",
        "toolbar": {{
          "title": "{app_name}",
          "menu": [{{"id": "settings_action", "icon": "settings", "action": "openSettings"}}]
        }},
        "screens": [
          {{ "name": "main", "title": "Main", "widgets": [{{"type": "button", "text": "Go to Settings", "action": "openSettings"}}] }},
          {{ "name": "settings", "title": "Settings", "widgets": [{{"type": "label", "text": "Settings Page"}}] }}
        ],
        "actions": [
          {{ "id": "openSettings", "type": "navigate", "screen": "settings" }}
        ]
      }}

User's app feature description: "{description}"
"""

REFERENCE_FILES_HEADER = """
--- REFERENCE FILES ---
The user has provided the following files as a reference. Use their content, style, and structure to guide your generation.
"""

REFERENCE_FILE_BLOCK = """
File: {name}
```
{content}
```
"""

REFERENCE_FILES_FOOTER = "--- END REFERENCE FILES ---"
