import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('at_tagging', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ConceptClass',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, unique=True)),
                ('url_segment', models.CharField(blank=True, db_index=True, max_length=255)),
                ('description', models.TextField(blank=True)),
                ('sort', models.IntegerField(default=0)),
            ],
            options={
                'ordering': ['sort', 'id'],
                'verbose_name_plural': 'concept classes',
            },
        ),
        migrations.CreateModel(
            name='AssociativeRelationType',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('label_left', models.CharField(max_length=255)),
                ('label_right', models.CharField(blank=True, max_length=255)),
                ('is_symmetric', models.BooleanField(default=True)),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='AssociativeRelation',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('is_inverse_relation', models.BooleanField(default=False)),
                ('sort', models.IntegerField(default=0)),
                ('destination', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='incoming_associative_relations', to='at_tagging.term')),
                ('relation_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='relation_instances', to='at_tagging.associativerelationtype')),
                ('source', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='associative_relations', to='at_tagging.term')),
            ],
            options={
                'ordering': ['sort', 'id'],
            },
        ),
        migrations.CreateModel(
            name='AlternativeTerm',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('alternative', 'Alternative term'), ('equivalent', 'Equivalent term'), ('language', 'Language term')], default='alternative', max_length=20)),
                ('name', models.CharField(max_length=255)),
                ('title', models.CharField(blank=True, max_length=255)),
                ('title_plural', models.CharField(blank=True, max_length=255)),
                ('url_segment', models.CharField(blank=True, db_index=True, max_length=255)),
                ('description', models.TextField(blank=True)),
                ('author_definition', models.TextField(blank=True)),
                ('public_definition', models.TextField(blank=True)),
                ('equivalent_type', models.CharField(blank=True, choices=[('acronym', 'acronym'), ('abbreviation', 'abbreviation'), ('synonym', 'synonym'), ('concatenation', 'concatenation'), ('shortened version', 'shortened version'), ('extended version', 'extended version'), ('regional variation', 'regional variation'), ('lexical variation', 'lexical variation'), ('alternative spelling', 'alternative spelling'), ('colloquialism', 'colloquialism'), ('slang', 'slang'), ('jargon', 'jargon'), ('shorthand', 'shorthand')], help_text='How an equivalent term relates to its preferred term.', max_length=30)),
                ('locale', models.CharField(blank=True, help_text="Locale of a language term, e.g. 'mi' or 'en_NZ'.", max_length=10)),
                ('is_primary', models.BooleanField(default=False, help_text='Is this the main language term for its locale?')),
                ('sort', models.IntegerField(default=0)),
                ('preferred_term', models.ForeignKey(help_text='Term this alternative stands for.', on_delete=django.db.models.deletion.CASCADE, related_name='alternative_terms', to='at_tagging.term')),
            ],
            options={
                'ordering': ['sort', 'id'],
            },
        ),
        migrations.AddField(
            model_name='term',
            name='primary_concept_class',
            field=models.ForeignKey(blank=True, default=None, help_text="Main concept class of this term. Terms without one use their root's.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='primary_terms', to='at_tagging.conceptclass'),
        ),
        migrations.AddField(
            model_name='term',
            name='other_concept_classes',
            field=models.ManyToManyField(blank=True, help_text='Further concept classes this term belongs to.', related_name='other_terms', to='at_tagging.conceptclass'),
        ),
    ]
